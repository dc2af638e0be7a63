from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from apps.dispatch_backend.models import AuditLog


def now_utc() -> datetime:
    # naive UTC, matching the DateTime columns
    return datetime.now(UTC).replace(tzinfo=None)


def iso_z(dt: datetime | None) -> str | None:
    return (dt.isoformat() + "Z") if dt else None


def audit_write(
    db,
    action: str,
    entity_type: str,
    entity_id: str | int,
    details: dict[str, Any],
    actor_user_id: str | None,
    request_id: str | None,
) -> None:
    db.add(
        AuditLog(
            actor_user_id=actor_user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            request_id=request_id,
            details_json=details,
            created_at_utc=now_utc(),
        )
    )
