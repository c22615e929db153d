import pytest

from app.deps import RequestContext
from app.models import Role
from app.services.policy import POLICY, Action, Entity, Scope, scope_for


def _ctx(role: Role) -> RequestContext:
    return RequestContext(user_id=1, email="x@example.com", role=role, clinic_id=1)


@pytest.mark.parametrize(
    ("role", "entity", "action", "expected"),
    [
        (Role.admin, Entity.doctor, Action.delete, Scope.clinic),
        (Role.receptionist, Entity.doctor, Action.delete, None),
        (Role.receptionist, Entity.patient, Action.delete, None),
        (Role.admin, Entity.patient, Action.delete, Scope.registered),
        (Role.receptionist, Entity.patient, Action.update, Scope.registered),
        (Role.receptionist, Entity.patient, Action.read, Scope.clinic),
        (Role.receptionist, Entity.consultation, Action.read, None),
        (Role.doctor, Entity.consultation, Action.create, Scope.own),
        (Role.doctor, Entity.invoice, Action.list, None),
        (Role.doctor, Entity.doctor, Action.read, Scope.own),
        (Role.patient, Entity.doctor, Action.list, Scope.any),
        (Role.patient, Entity.invoice, Action.pay, Scope.own),
        (Role.patient, Entity.patient, Action.list, None),
        (Role.patient, Entity.stats, Action.read, None),
        (Role.admin, Entity.consultation, Action.create, None),
    ],
)
def test_scope_for(role, entity, action, expected):
    assert scope_for(_ctx(role), entity, action) == expected


def test_every_role_has_a_policy_entry():
    assert set(POLICY) == set(Role)
