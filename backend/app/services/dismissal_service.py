from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.alerts.dismissals import DismissalStore, strip_digest
from backend.app.alerts.schema import AlertKey
from backend.app.api import config
from backend.app.models import ALERT_KEY_LENGTH, AlertDismissal
from backend.app.services import audit_service

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_key(raw: str) -> AlertKey:
    if len(raw or "") > ALERT_KEY_LENGTH:
        raise HTTPException(status_code=400, detail=f"alert key longer than {ALERT_KEY_LENGTH} characters")
    # Opt-in message digests ride after "#" and are not part of the identity.
    try:
        return AlertKey.parse(strip_digest(raw or ""))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _serialize(row: AlertDismissal) -> Dict[str, Optional[str]]:
    return {
        "user_id": row.user_id,
        "alert_key": row.alert_key,
        "kind": row.kind,
        "subject_id": row.subject_id,
        "bucket": row.bucket,
        "actor": row.actor,
        "dismissed_at": row.dismissed_at.isoformat() if row.dismissed_at else None,
    }


class SqlDismissalBackend:
    """
    Dismissal backend over the alert_dismissals table, scoped to one user.

    put() is an upsert: repeating a dismissal refreshes dismissed_at
    (last writer wins) and never creates a second row.
    """

    def __init__(self, db: Session, user_id: str, *, actor: Optional[str] = None) -> None:
        self.db = db
        self.user_id = user_id
        self.actor = actor

    def get(self, keys: Iterable[str]) -> Set[str]:
        wanted = list(set(keys))
        if not wanted:
            return set()
        rows = self.db.execute(
            select(AlertDismissal.alert_key).where(
                AlertDismissal.user_id == self.user_id,
                AlertDismissal.alert_key.in_(wanted),
            )
        ).scalars().all()
        return set(rows)

    def put(self, key: str) -> None:
        self.upsert(key)
        self.db.commit()

    def upsert(self, key: str) -> AlertDismissal:
        identity = _parse_key(key)
        now = _now()
        row = self.db.get(AlertDismissal, (self.user_id, key))
        before = _serialize(row) if row else None
        if row is None:
            row = AlertDismissal(
                user_id=self.user_id,
                alert_key=key,
                kind=identity.kind,
                subject_id=identity.subject_id,
                bucket=identity.bucket,
                actor=self.actor,
                dismissed_at=now,
            )
            self.db.add(row)
        else:
            row.dismissed_at = now
            row.actor = self.actor or row.actor
        self.db.flush()
        audit_service.log_audit_event(
            self.db,
            scope_id=self.user_id,
            event_type="alert_dismissed",
            actor=self.actor or self.user_id,
            before=before,
            after=_serialize(row),
        )
        return row


def dismissal_store(db: Session, user_id: str, *, actor: Optional[str] = None) -> DismissalStore:
    return DismissalStore(
        SqlDismissalBackend(db, user_id, actor=actor),
        realert_on_change=config.realert_on_change(),
    )


def dismiss_alert(db: Session, user_id: str, alert_key: str, *, actor: Optional[str] = None) -> dict:
    backend = SqlDismissalBackend(db, user_id, actor=actor)
    row = backend.upsert(alert_key)
    db.commit()
    logger.info("Alert dismissed user_id=%s key=%s", user_id, alert_key)
    return _serialize(row)


def restore_alert(db: Session, user_id: str, alert_key: str, *, actor: Optional[str] = None) -> dict:
    row = db.get(AlertDismissal, (user_id, alert_key))
    if not row:
        raise HTTPException(status_code=404, detail="dismissal not found")
    before = _serialize(row)
    db.delete(row)
    audit_service.log_audit_event(
        db,
        scope_id=user_id,
        event_type="alert_restored",
        actor=actor or user_id,
        before=before,
        after=None,
    )
    db.commit()
    logger.info("Alert restored user_id=%s key=%s", user_id, alert_key)
    return before


def list_dismissals(db: Session, user_id: str, kind: Optional[str] = None) -> List[dict]:
    query = select(AlertDismissal).where(AlertDismissal.user_id == user_id)
    if kind:
        query = query.where(AlertDismissal.kind == kind)
    rows = db.execute(query.order_by(AlertDismissal.dismissed_at.desc())).scalars().all()
    return [_serialize(row) for row in rows]
