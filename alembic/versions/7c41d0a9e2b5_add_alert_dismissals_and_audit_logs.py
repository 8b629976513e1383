"""Add alert dismissals and audit logs (idempotent).

Revision ID: 7c41d0a9e2b5
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "7c41d0a9e2b5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(bind, name: str) -> bool:
    return sa.inspect(bind).has_table(name)


def upgrade() -> None:
    bind = op.get_bind()

    if not _table_exists(bind, "alert_dismissals"):
        op.create_table(
            "alert_dismissals",
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("alert_key", sa.String(length=255), nullable=False),
            sa.Column("kind", sa.String(length=40), nullable=False),
            sa.Column("subject_id", sa.String(length=255), nullable=False),
            sa.Column("bucket", sa.String(length=255), nullable=False),
            sa.Column("actor", sa.String(length=64), nullable=True),
            sa.Column("dismissed_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("user_id", "alert_key"),
        )
        op.create_index("ix_alert_dismissals_user_id", "alert_dismissals", ["user_id"])
        op.create_index("ix_alert_dismissals_subject", "alert_dismissals", ["kind", "subject_id"])

    if not _table_exists(bind, "audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("scope_id", sa.String(length=64), nullable=False),
            sa.Column("event_type", sa.String(length=80), nullable=False),
            sa.Column("actor", sa.String(length=64), nullable=False),
            sa.Column("reason", sa.String(length=200), nullable=True),
            sa.Column("before_state", sa.JSON(), nullable=True),
            sa.Column("after_state", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_audit_logs_scope_id", "audit_logs", ["scope_id"])
        op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    bind = op.get_bind()

    if _table_exists(bind, "audit_logs"):
        op.drop_table("audit_logs")
    if _table_exists(bind, "alert_dismissals"):
        op.drop_table("alert_dismissals")
