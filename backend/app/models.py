from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.db import Base


# -------------------------
# Helpers
# -------------------------

def uuid_str() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -------------------------
# Alert dismissals
# -------------------------

ALERT_KEY_LENGTH = 255


class AlertDismissal(Base):
    """
    One row per (user, alert key). Monotonic: rows are only removed by an
    explicit restore.
    """
    __tablename__ = "alert_dismissals"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    alert_key: Mapped[str] = mapped_column(String(ALERT_KEY_LENGTH), primary_key=True)

    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(ALERT_KEY_LENGTH), nullable=False)
    bucket: Mapped[str] = mapped_column(String(ALERT_KEY_LENGTH), nullable=False)

    actor: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    dismissed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_alert_dismissals_user_id", "user_id"),
        Index("ix_alert_dismissals_subject", "kind", "subject_id"),
    )


class AuditLog(Base):
    """
    Append-only audit log for dismissal changes.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_scope_id", "scope_id"),
        Index("ix_audit_logs_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    scope_id: Mapped[str] = mapped_column(String(64), nullable=False)

    event_type: Mapped[str] = mapped_column(String(80), nullable=False)
    actor: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    before_state: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    after_state: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
