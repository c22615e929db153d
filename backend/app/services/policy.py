"""Role and tenant authorization.

Every handler asks the same table which scope (if any) the caller's role has
for an action on an entity, then applies that scope either as a SQL filter for
lists or as an existence check for a single row. Both paths share the clauses
built here so list results and single-entity checks cannot drift apart.
"""

from __future__ import annotations

import enum
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import ColumnElement, Select, false, func, or_, select, true
from sqlalchemy.orm import Session

from app.deps import RequestContext
from app.models.appointment import Appointment
from app.models.audit_log import AuditLog
from app.models.clinic import Clinic
from app.models.consultation import Consultation
from app.models.doctor import Doctor
from app.models.invoice import Invoice
from app.models.patient import Patient
from app.models.prescription import Prescription
from app.models.service import Service
from app.models.user import Role, User


class Entity(str, enum.Enum):
    clinic = "clinic"
    staff = "staff"
    doctor = "doctor"
    patient = "patient"
    service = "service"
    appointment = "appointment"
    consultation = "consultation"
    prescription = "prescription"
    invoice = "invoice"
    stats = "stats"
    audit = "audit"


class Action(str, enum.Enum):
    list = "list"
    read = "read"
    create = "create"
    update = "update"
    delete = "delete"
    pay = "pay"
    export = "export"


class Scope(str, enum.Enum):
    any = "any"
    clinic = "clinic"
    registered = "registered"
    own = "own"


A, S = Action, Scope
_CRUD = (A.list, A.read, A.create, A.update, A.delete)


def _grant(actions, scope: Scope) -> dict[Action, Scope]:
    return {action: scope for action in actions}


POLICY: dict[Role, dict[Entity, dict[Action, Scope]]] = {
    Role.admin: {
        Entity.clinic: _grant((A.read, A.update), S.clinic),
        Entity.staff: _grant(_CRUD, S.clinic),
        Entity.doctor: _grant(_CRUD, S.clinic),
        Entity.patient: {
            **_grant((A.list, A.read, A.create), S.clinic),
            **_grant((A.update, A.delete), S.registered),
        },
        Entity.service: _grant(_CRUD, S.clinic),
        Entity.appointment: _grant(_CRUD, S.clinic),
        Entity.consultation: _grant((A.list, A.read), S.clinic),
        Entity.prescription: _grant((A.list, A.read, A.export), S.clinic),
        Entity.invoice: _grant((A.list, A.read, A.create, A.update, A.pay), S.clinic),
        Entity.stats: _grant((A.read,), S.clinic),
        Entity.audit: _grant((A.list,), S.clinic),
    },
    Role.receptionist: {
        Entity.clinic: _grant((A.read,), S.clinic),
        Entity.doctor: _grant((A.list, A.read), S.clinic),
        Entity.patient: {
            **_grant((A.list, A.read, A.create), S.clinic),
            A.update: S.registered,
        },
        Entity.service: _grant((A.list, A.read), S.clinic),
        Entity.appointment: _grant(_CRUD, S.clinic),
        Entity.prescription: _grant((A.list, A.read, A.export), S.clinic),
        Entity.invoice: _grant((A.list, A.read, A.create, A.update, A.pay), S.clinic),
        Entity.stats: _grant((A.read,), S.clinic),
    },
    Role.doctor: {
        Entity.clinic: _grant((A.read,), S.clinic),
        Entity.doctor: {A.list: S.clinic, A.read: S.own},
        Entity.patient: _grant((A.list, A.read), S.own),
        Entity.service: _grant((A.list, A.read), S.clinic),
        Entity.appointment: _grant((A.list, A.read, A.update), S.own),
        Entity.consultation: _grant((A.list, A.read, A.create, A.update), S.own),
        Entity.prescription: _grant((A.list, A.read, A.create, A.export), S.own),
        Entity.stats: _grant((A.read,), S.clinic),
    },
    Role.patient: {
        Entity.doctor: _grant((A.list,), S.any),
        Entity.patient: _grant((A.read,), S.own),
        Entity.service: _grant((A.list,), S.any),
        Entity.appointment: _grant((A.list, A.read, A.create, A.update), S.own),
        Entity.consultation: _grant((A.list, A.read), S.own),
        Entity.prescription: _grant((A.list, A.read, A.export), S.own),
        Entity.invoice: _grant((A.list, A.read, A.pay), S.own),
    },
}

ENTITY_MODELS: dict[Entity, Any] = {
    Entity.clinic: Clinic,
    Entity.staff: User,
    Entity.doctor: Doctor,
    Entity.patient: Patient,
    Entity.service: Service,
    Entity.appointment: Appointment,
    Entity.consultation: Consultation,
    Entity.prescription: Prescription,
    Entity.invoice: Invoice,
    Entity.audit: AuditLog,
}


def scope_for(ctx: RequestContext, entity: Entity, action: Action) -> Scope | None:
    return POLICY.get(ctx.role, {}).get(entity, {}).get(action)


def authorize(ctx: RequestContext, entity: Entity, action: Action) -> Scope:
    scope = scope_for(ctx, entity, action)
    if scope is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return scope


def _own_appointment_ids(ctx: RequestContext):
    if ctx.role == Role.doctor:
        return (
            select(Appointment.id)
            .join(Doctor, Appointment.doctor_id == Doctor.id)
            .where(Doctor.user_id == ctx.user_id)
        )
    return (
        select(Appointment.id)
        .join(Patient, Appointment.patient_id == Patient.id)
        .where(Patient.user_id == ctx.user_id)
    )


def _clinic_clause(ctx: RequestContext, entity: Entity) -> ColumnElement[bool]:
    clinic_id = ctx.clinic_id
    if clinic_id is None:
        return false()
    if entity == Entity.clinic:
        return Clinic.id == clinic_id
    if entity == Entity.doctor:
        return Doctor.user_id.in_(select(User.id).where(User.clinic_id == clinic_id))
    if entity == Entity.patient:
        return or_(
            Patient.registered_clinic_id == clinic_id,
            Patient.id.in_(
                select(Appointment.patient_id).where(Appointment.clinic_id == clinic_id)
            ),
        )
    if entity == Entity.consultation:
        return Consultation.appointment_id.in_(
            select(Appointment.id).where(Appointment.clinic_id == clinic_id)
        )
    if entity == Entity.prescription:
        return Prescription.consultation_id.in_(
            select(Consultation.id)
            .join(Appointment, Consultation.appointment_id == Appointment.id)
            .where(Appointment.clinic_id == clinic_id)
        )
    return ENTITY_MODELS[entity].clinic_id == clinic_id


def _registered_clause(ctx: RequestContext, entity: Entity) -> ColumnElement[bool]:
    # a shared appointment lets another clinic see a patient, never change or remove it
    if entity == Entity.patient and ctx.clinic_id is not None:
        return Patient.registered_clinic_id == ctx.clinic_id
    return false()


def _own_clause(ctx: RequestContext, entity: Entity) -> ColumnElement[bool]:
    if entity == Entity.doctor:
        return Doctor.user_id == ctx.user_id
    if entity == Entity.patient:
        if ctx.role == Role.doctor:
            return Patient.id.in_(
                select(Appointment.patient_id)
                .join(Doctor, Appointment.doctor_id == Doctor.id)
                .where(Doctor.user_id == ctx.user_id)
            )
        return Patient.user_id == ctx.user_id
    if entity == Entity.appointment:
        return Appointment.id.in_(_own_appointment_ids(ctx))
    if entity == Entity.consultation:
        return Consultation.appointment_id.in_(_own_appointment_ids(ctx))
    if entity == Entity.prescription:
        return Prescription.consultation_id.in_(
            select(Consultation.id).where(
                Consultation.appointment_id.in_(_own_appointment_ids(ctx))
            )
        )
    if entity == Entity.invoice and ctx.role == Role.patient:
        return Invoice.patient_id.in_(select(Patient.id).where(Patient.user_id == ctx.user_id))
    return false()


def scope_clause(ctx: RequestContext, entity: Entity, scope: Scope) -> ColumnElement[bool]:
    if scope == Scope.any:
        return true()
    if scope == Scope.clinic:
        return _clinic_clause(ctx, entity)
    if scope == Scope.registered:
        return _registered_clause(ctx, entity)
    return _own_clause(ctx, entity)


def scoped(stmt: Select, ctx: RequestContext, entity: Entity, scope: Scope) -> Select:
    return stmt.where(scope_clause(ctx, entity, scope))


def in_scope(db: Session, ctx: RequestContext, entity: Entity, scope: Scope, obj: Any) -> bool:
    if scope == Scope.any:
        return True
    model = ENTITY_MODELS[entity]
    stmt = (
        select(func.count())
        .select_from(model)
        .where(model.id == obj.id, scope_clause(ctx, entity, scope))
    )
    return bool(db.scalar(stmt))


def ensure_allowed(
    db: Session, ctx: RequestContext, entity: Entity, action: Action, obj: Any
) -> None:
    """Raise 403 unless the caller may perform ``action`` on this row."""
    scope = authorize(ctx, entity, action)
    if not in_scope(db, ctx, entity, scope, obj):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
