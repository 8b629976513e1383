from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Literal, Optional

AlertKind = Literal["BudgetAlert", "DeadlineAlert", "PendingApprovalAlert", "TrendAlert"]
Severity = Literal["info", "success", "warning", "danger"]

ALERT_KINDS = ("BudgetAlert", "DeadlineAlert", "PendingApprovalAlert", "TrendAlert")

KEY_SEPARATOR = ":"


@dataclass(frozen=True)
class AlertKey:
    """
    Stable identity of an alert condition.

    Two evaluation passes over the same underlying condition produce the same
    key even when the counts or percentages in the message change.
    """
    kind: str
    subject_id: str
    bucket: str

    def __str__(self) -> str:
        return KEY_SEPARATOR.join((self.kind, self.subject_id, self.bucket))

    @classmethod
    def parse(cls, raw: str) -> "AlertKey":
        """
        Parse "kind:subject_id:bucket".

        Kinds and buckets never contain the separator, so the kind is split
        off the left and the bucket off the right; subject ids may carry ":".
        """
        kind, _, rest = (raw or "").partition(KEY_SEPARATOR)
        subject_id, _, bucket = rest.rpartition(KEY_SEPARATOR)
        if not (kind and subject_id and bucket):
            raise ValueError(f"invalid alert key {raw!r}")
        if kind not in ALERT_KINDS:
            raise ValueError(f"invalid alert kind {kind!r}")
        return cls(kind=kind, subject_id=subject_id, bucket=bucket)


@dataclass(frozen=True)
class TriggerEvent:
    kind: AlertKind
    subject_id: str
    severity: Severity
    computed_at: datetime
    bucket: str
    # Raw values the notification text is rendered from (unformatted).
    context: Dict[str, Any] = field(default_factory=dict)
    subject_name: Optional[str] = None

    @property
    def key(self) -> AlertKey:
        return AlertKey(kind=self.kind, subject_id=self.subject_id, bucket=self.bucket)
