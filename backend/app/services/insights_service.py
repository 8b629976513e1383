"""
End-to-end insights pipeline.

raw records -> normalize -> rollup -> summarize -> {trend, evaluate}
            -> notifications -> dismissal filter

Each run is a pure function of its inputs plus one dismissal read. The result
is built completely before it is returned, so a caller can swap it in for the
previous one atomically. Concurrent runs over the same input give the same
result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from backend.app.alerts.dismissals import DismissalStore
from backend.app.alerts.notifications import Notification, build
from backend.app.alerts.schema import TriggerEvent
from backend.app.alerts.thresholds import DEFAULT_DEADLINE_DAYS, evaluate
from backend.app.intake.normalize import Issue, NormalizedBatch, Project, TimeEntry, normalize_batch
from backend.app.rollup.costs import rollup
from backend.app.rollup.financials import (
    FinancialSummary,
    PortfolioSummary,
    summarize_all,
    summarize_portfolio,
)
from backend.app.rollup.trends import Period, TrendResult, daily_hours, period_trend

logger = logging.getLogger(__name__)

ADMIN_ROLES = {"SUPER_ADMIN", "ADMIN"}
MANAGER_ROLE = "PROJECT_MANAGER"
MEMBER_ROLE = "TEAM_MEMBER"

SEVERITY_ORDER = {"danger": 0, "warning": 1, "info": 2, "success": 3}


@dataclass(frozen=True)
class Viewer:
    user_id: str
    role: str = MEMBER_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


@dataclass
class InsightsResult:
    viewer: Viewer
    computed_at: datetime
    summaries: List[FinancialSummary]
    portfolio: PortfolioSummary
    trend: TrendResult
    daily_hours: List[Dict[str, Any]]
    events: List[TriggerEvent]
    notifications: List[Notification]
    suppressed: int = 0
    issues: List[Issue] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "summaries": [s.as_dict() for s in self.summaries],
            "portfolio": self.portfolio.as_dict(),
            "trend": self.trend.as_dict(),
            "daily_hours": self.daily_hours,
            "notifications": [n.as_dict() for n in self.notifications],
            "issues": [
                {
                    "kind": i.kind,
                    "record_type": i.record_type,
                    "record_id": i.record_id,
                    "field": i.field,
                    "detail": i.detail,
                }
                for i in self.issues
            ],
            "meta": {
                "user_id": self.viewer.user_id,
                "role": self.viewer.role,
                "computed_at": self.computed_at.isoformat(),
                "event_count": len(self.events),
                "notification_count": len(self.notifications),
                "suppressed": self.suppressed,
            },
        }


# -------------------------
# Scoping
# -------------------------

def can_see_project(project: Project, viewer: Viewer) -> bool:
    if viewer.is_admin:
        return True
    if viewer.role == MANAGER_ROLE:
        return project.manager_id == viewer.user_id
    if viewer.role == MEMBER_ROLE:
        return viewer.user_id in project.member_ids or project.manager_id == viewer.user_id
    return False


def visible_projects(projects: Iterable[Project], viewer: Viewer) -> List[Project]:
    return [p for p in projects if can_see_project(p, viewer)]


def scoped_entries(entries: Iterable[TimeEntry], projects: Iterable[Project], viewer: Viewer) -> List[TimeEntry]:
    """Entries the viewer's dashboard covers."""
    if viewer.is_admin:
        return list(entries)
    if viewer.role == MANAGER_ROLE:
        managed = {p.id for p in projects if p.manager_id == viewer.user_id}
        return [e for e in entries if e.project_id in managed]
    if viewer.role == MEMBER_ROLE:
        return [e for e in entries if e.employee_id == viewer.user_id]
    return []


def pending_count(entries: Iterable[TimeEntry], projects: Iterable[Project], viewer: Viewer) -> int:
    return sum(1 for e in scoped_entries(entries, projects, viewer) if e.pending)


def order_notifications(notifications: Iterable[Notification]) -> List[Notification]:
    return sorted(
        notifications,
        key=lambda n: (
            SEVERITY_ORDER.get(n.severity, 9),
            n.metadata.get("kind", ""),
            n.metadata.get("subject_id", ""),
            n.user_id,
        ),
    )


# -------------------------
# Pipeline
# -------------------------

def compute_insights(
    batch: NormalizedBatch,
    *,
    viewer: Viewer,
    today: Optional[date] = None,
    computed_at: Optional[datetime] = None,
    store: Optional[DismissalStore] = None,
    deadline_threshold_days: int = DEFAULT_DEADLINE_DAYS,
    period: Period = "week",
    week_start: int = 0,
) -> InsightsResult:
    now = computed_at or datetime.now(timezone.utc)
    as_of = today or now.date()

    rollups = rollup(batch.entries, batch.employees)
    projects = visible_projects(batch.projects, viewer)
    summaries = summarize_all(projects, rollups)

    entries = scoped_entries(batch.entries, batch.projects, viewer)
    current_trend = period_trend(
        entries,
        batch.employees,
        reference=as_of,
        period=period,
        week_start=week_start,
    )

    events = evaluate(
        summaries,
        trends={viewer.user_id: current_trend},
        pending_counts={viewer.user_id: pending_count(batch.entries, batch.projects, viewer)},
        deadlines={p.id: p.end_date for p in projects if not p.archived},
        today=as_of,
        computed_at=now,
        deadline_threshold_days=deadline_threshold_days,
    )

    notifications: List[Notification] = []
    for event in events:
        notifications.extend(build(event, [viewer.user_id]))
    notifications = order_notifications(notifications)

    visible = store.filter(notifications) if store is not None else notifications
    suppressed = len(notifications) - len(visible)

    logger.info(
        "Insights computed user_id=%s projects=%s events=%s notifications=%s suppressed=%s",
        viewer.user_id,
        len(summaries),
        len(events),
        len(visible),
        suppressed,
    )
    return InsightsResult(
        viewer=viewer,
        computed_at=now,
        summaries=summaries,
        portfolio=summarize_portfolio(summaries),
        trend=current_trend,
        daily_hours=daily_hours(entries, today=as_of),
        events=events,
        notifications=visible,
        suppressed=suppressed,
        issues=list(batch.issues),
    )


def run_insights(
    raw_entries: Iterable[Mapping[str, Any]],
    raw_projects: Iterable[Mapping[str, Any]],
    raw_employees: Iterable[Mapping[str, Any]],
    **kwargs: Any,
) -> InsightsResult:
    return compute_insights(normalize_batch(raw_entries, raw_projects, raw_employees), **kwargs)
