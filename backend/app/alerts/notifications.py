from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional, Tuple

from .schema import AlertKey, TriggerEvent

NotificationType = Literal[
    "PROJECT_BUDGET_ALERT",
    "PROJECT_DEADLINE_APPROACHING",
    "TIMESHEET_PENDING_APPROVAL",
    "HOURS_TREND",
]

NOTIFICATION_TYPES: Dict[str, NotificationType] = {
    "BudgetAlert": "PROJECT_BUDGET_ALERT",
    "DeadlineAlert": "PROJECT_DEADLINE_APPROACHING",
    "PendingApprovalAlert": "TIMESHEET_PENDING_APPROVAL",
    "TrendAlert": "HOURS_TREND",
}


@dataclass(frozen=True)
class Notification:
    type: NotificationType
    user_id: str
    title: str
    message: str
    severity: str
    created_at: datetime
    link: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def alert_key(self) -> AlertKey:
        return AlertKey(
            kind=self.metadata["kind"],
            subject_id=self.metadata["subject_id"],
            bucket=self.metadata["bucket"],
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "link": self.link,
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
        }


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


def _project_label(event: TriggerEvent) -> str:
    return event.subject_name or event.subject_id


def _budget_text(event: TriggerEvent) -> Tuple[str, str, Optional[str]]:
    utilization = float(event.context.get("utilization_pct") or 0.0)
    name = _project_label(event)
    if utilization >= 100:
        message = f"Project {name} has exceeded its budget ({utilization:.1f}% used)"
    else:
        message = f"Project {name} has used {utilization:.1f}% of its budget"
    return "Budget Alert", message, f"/projects/{event.subject_id}"


def _deadline_text(event: TriggerEvent) -> Tuple[str, str, Optional[str]]:
    days = int(event.context.get("days_remaining") or 0)
    message = f"Project {_project_label(event)} deadline is in {_plural(days, 'day')}"
    return "Deadline Approaching", message, f"/projects/{event.subject_id}"


def _pending_text(event: TriggerEvent) -> Tuple[str, str, Optional[str]]:
    count = int(event.context.get("pending_count") or 0)
    verb = "is" if count == 1 else "are"
    message = f"{_plural(count, 'timesheet')} {verb} awaiting approval"
    return "Pending Approvals", message, "/timesheets?status=SUBMITTED"


def _trend_text(event: TriggerEvent) -> Tuple[str, str, Optional[str]]:
    delta = float(event.context.get("delta_pct") or 0.0)
    period = event.context.get("period") or "week"
    direction = "up" if delta > 0 else "down"
    title = "Hours Trending Up" if delta > 0 else "Hours Trending Down"
    message = f"Hours logged this {period} are {direction} {abs(delta):.1f}% versus last {period}"
    return title, message, "/reports"


TEMPLATES: Dict[str, Callable[[TriggerEvent], Tuple[str, str, Optional[str]]]] = {
    "BudgetAlert": _budget_text,
    "DeadlineAlert": _deadline_text,
    "PendingApprovalAlert": _pending_text,
    "TrendAlert": _trend_text,
}


def build(
    event: TriggerEvent,
    recipients: Iterable[str],
    *,
    created_at: Optional[datetime] = None,
) -> List[Notification]:
    """
    One notification per recipient for a trigger event.

    Text is rendered here from the raw event context. metadata carries the
    identity fields (kind, subject_id, bucket) plus the raw values, so the
    dismissal key never depends on the rendered message.
    """
    title, message, link = TEMPLATES[event.kind](event)
    metadata: Dict[str, Any] = {
        "kind": event.kind,
        "subject_id": event.subject_id,
        "bucket": event.bucket,
        "alert_key": str(event.key),
        **event.context,
    }
    stamp = created_at or event.computed_at
    seen = set()
    out: List[Notification] = []
    for user_id in recipients:
        if not user_id or user_id in seen:
            continue
        seen.add(user_id)
        out.append(
            Notification(
                type=NOTIFICATION_TYPES[event.kind],
                user_id=user_id,
                title=title,
                message=message,
                severity=event.severity,
                created_at=stamp,
                link=link,
                metadata=dict(metadata),
            )
        )
    return out
