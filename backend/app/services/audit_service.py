from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from backend.app.models import AuditLog


def log_audit_event(
    db: Session,
    *,
    scope_id: str,
    event_type: str,
    actor: str,
    reason: Optional[str] = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    row = AuditLog(
        scope_id=scope_id,
        event_type=event_type,
        actor=actor,
        reason=reason,
        before_state=before,
        after_state=after,
    )
    db.add(row)
    db.flush()
    return row
