from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from app.deps import RequestContext
from app.models.audit_log import AuditLog

REDACTED_COLUMNS = {"hashed_password"}


def snapshot_model(obj: Any | None) -> dict | None:
    if obj is None:
        return None
    data: dict[str, Any] = {}
    mapper = inspect(obj).mapper
    for column in mapper.columns:
        key = column.key
        if key in REDACTED_COLUMNS:
            continue
        data[key] = getattr(obj, key)
    return jsonable_encoder(data)


def log_event(
    db: Session,
    *,
    ctx: RequestContext | None,
    action: str,
    entity_type: str,
    entity_id: str | int,
    clinic_id: int | None = None,
    before_obj: Any | None = None,
    after_obj: Any | None = None,
    before_data: dict | None = None,
    after_data: dict | None = None,
) -> AuditLog:
    entry = AuditLog(
        clinic_id=clinic_id if clinic_id is not None else (ctx.clinic_id if ctx else None),
        actor_user_id=ctx.user_id if ctx else None,
        actor_email=ctx.email if ctx else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        request_id=ctx.request_id if ctx else None,
        ip_address=ctx.ip_address if ctx else None,
        before_json=before_data if before_data is not None else snapshot_model(before_obj),
        after_json=jsonable_encoder(after_data)
        if after_data is not None
        else snapshot_model(after_obj),
    )
    db.add(entry)
    return entry
