from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional

from backend.app.alerts.dismissals import DismissalStore
from backend.app.alerts.notifications import Notification, build
from backend.app.alerts.thresholds import DEFAULT_DEADLINE_DAYS, evaluate
from backend.app.intake.normalize import NormalizedBatch, Project
from backend.app.rollup.costs import rollup
from backend.app.rollup.financials import summarize_all

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = {"PLANNING", "IN_PROGRESS"}


@dataclass
class SweepResult:
    budget_alerts: int = 0
    deadline_alerts: int = 0
    suppressed: int = 0
    notifications: List[Notification] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {
            "budget_alerts": self.budget_alerts,
            "deadline_alerts": self.deadline_alerts,
            "notifications": len(self.notifications),
            "suppressed": self.suppressed,
        }


def is_active(project: Project) -> bool:
    return not project.archived and str(project.status or "").upper() in ACTIVE_STATUSES


def run_alert_sweep(
    batch: NormalizedBatch,
    *,
    today: Optional[date] = None,
    computed_at: Optional[datetime] = None,
    deadline_threshold_days: int = DEFAULT_DEADLINE_DAYS,
    store_for: Optional[Callable[[str], DismissalStore]] = None,
) -> SweepResult:
    """
    Daily budget/deadline sweep over active projects.

    Notifications go to each project's audience (manager + members). Counts
    are per delivered notification, after dismissal filtering.
    """
    now = computed_at or datetime.now(timezone.utc)
    projects = [p for p in batch.projects if is_active(p)]
    project_map = {p.id: p for p in projects}
    summaries = summarize_all(projects, rollup(batch.entries, batch.employees))

    events = evaluate(
        summaries,
        deadlines={p.id: p.end_date for p in projects},
        today=today or now.date(),
        computed_at=now,
        deadline_threshold_days=deadline_threshold_days,
    )

    candidates: List[Notification] = []
    for event in events:
        candidates.extend(build(event, project_map[event.subject_id].audience))

    delivered = candidates
    if store_for is not None:
        by_user: Dict[str, List[Notification]] = {}
        for notification in candidates:
            by_user.setdefault(notification.user_id, []).append(notification)
        # One dismissal read per recipient.
        kept = set()
        for user_id, items in by_user.items():
            kept.update(id(n) for n in store_for(user_id).filter(items))
        delivered = [n for n in candidates if id(n) in kept]

    result = SweepResult(suppressed=len(candidates) - len(delivered), notifications=delivered)
    for notification in delivered:
        if notification.metadata["kind"] == "BudgetAlert":
            result.budget_alerts += 1
        else:
            result.deadline_alerts += 1

    logger.info("Alert sweep finished: %s", result.counts())
    return result
