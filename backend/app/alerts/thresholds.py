"""
Threshold evaluation.

Fixed rule table:

  BudgetAlert           utilization >= 80 / 90 / 100   info / warning / danger
                        (highest rung only, one event per project)
  DeadlineAlert         0 < days_remaining <= threshold (default 7)   warning
  PendingApprovalAlert  pending_count > 0                              warning
  TrendAlert            delta < -10% (info) or delta > +10% (success)

These numbers are business contracts, not tunables.

Evaluation is pure over already computed summaries/trends: nothing is fetched
or recomputed, and nothing is suppressed here. Dismissal filtering happens in
the dismissal store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, List, Mapping, Optional, Tuple

from backend.app.rollup.financials import FinancialSummary
from backend.app.rollup.trends import TrendResult

from .schema import Severity, TriggerEvent

# Highest rung first.
BUDGET_THRESHOLDS: Tuple[Tuple[float, Severity], ...] = (
    (100.0, "danger"),
    (90.0, "warning"),
    (80.0, "info"),
)
DEFAULT_DEADLINE_DAYS = 7
TREND_DROP_PCT = -10.0
TREND_RISE_PCT = 10.0


@dataclass(frozen=True)
class DeadlineCheck:
    should_alert: bool
    days_remaining: int


def budget_rung(utilization_pct: float) -> Optional[Tuple[float, Severity]]:
    """Highest budget threshold crossed, or None below 80%."""
    for threshold, severity in BUDGET_THRESHOLDS:
        if utilization_pct >= threshold:
            return threshold, severity
    return None


def should_send_budget_alert(utilization_pct: float) -> bool:
    return budget_rung(utilization_pct) is not None


def check_deadline(
    end_date: Optional[date],
    today: date,
    threshold_days: int = DEFAULT_DEADLINE_DAYS,
) -> DeadlineCheck:
    """
    Whole calendar days between today and the deadline.

    No end date: no alert, 0 days. Due today or past due (days <= 0) is a
    separate state and does not alert.
    """
    if end_date is None:
        return DeadlineCheck(should_alert=False, days_remaining=0)
    # Calendar-day difference (today+5 -> 5), not ceil(end of day - start of day), which would give 6.
    days_remaining = (end_date - today).days
    return DeadlineCheck(
        should_alert=0 < days_remaining <= threshold_days,
        days_remaining=days_remaining,
    )


def _bucket_label(threshold: float) -> str:
    return str(int(threshold)) if float(threshold).is_integer() else str(threshold)


def budget_events(summaries: Iterable[FinancialSummary], computed_at: datetime) -> List[TriggerEvent]:
    events: List[TriggerEvent] = []
    for summary in summaries:
        if not summary.has_budget:
            continue
        rung = budget_rung(summary.utilization_pct)
        if rung is None:
            continue
        threshold, severity = rung
        events.append(
            TriggerEvent(
                kind="BudgetAlert",
                subject_id=summary.project_id,
                severity=severity,
                computed_at=computed_at,
                bucket=_bucket_label(threshold),
                subject_name=summary.name,
                context={
                    "project_id": summary.project_id,
                    "threshold": threshold,
                    "utilization_pct": summary.utilization_pct,
                    "budget": summary.fixed_cost,
                    "actual_cost": summary.actual_cost,
                },
            )
        )
    return events


def deadline_events(
    deadlines: Mapping[str, Optional[date]],
    today: date,
    computed_at: datetime,
    *,
    threshold_days: int = DEFAULT_DEADLINE_DAYS,
    names: Optional[Mapping[str, Optional[str]]] = None,
) -> List[TriggerEvent]:
    events: List[TriggerEvent] = []
    for project_id, end_date in deadlines.items():
        check = check_deadline(end_date, today, threshold_days)
        if not check.should_alert:
            continue
        events.append(
            TriggerEvent(
                kind="DeadlineAlert",
                subject_id=project_id,
                severity="warning",
                computed_at=computed_at,
                # A moved deadline is a new condition.
                bucket=f"{threshold_days}d@{end_date.isoformat()}",
                subject_name=(names or {}).get(project_id),
                context={
                    "project_id": project_id,
                    "threshold": threshold_days,
                    "days_remaining": check.days_remaining,
                    "end_date": end_date.isoformat(),
                },
            )
        )
    return events


def pending_events(pending_counts: Mapping[str, int], computed_at: datetime) -> List[TriggerEvent]:
    return [
        TriggerEvent(
            kind="PendingApprovalAlert",
            subject_id=scope_id,
            severity="warning",
            computed_at=computed_at,
            bucket="pending",
            context={"scope_id": scope_id, "pending_count": count},
        )
        for scope_id, count in pending_counts.items()
        if count > 0
    ]


def trend_events(trends: Mapping[str, TrendResult], computed_at: datetime) -> List[TriggerEvent]:
    events: List[TriggerEvent] = []
    for subject_id, result in trends.items():
        if result.delta_pct < TREND_DROP_PCT:
            direction, severity = "down", "info"
        elif result.delta_pct > TREND_RISE_PCT:
            direction, severity = "up", "success"
        else:
            continue
        bucket = f"{direction}@{result.period_start.isoformat()}" if result.period_start else direction
        events.append(
            TriggerEvent(
                kind="TrendAlert",
                subject_id=subject_id,
                severity=severity,
                computed_at=computed_at,
                bucket=bucket,
                context={
                    "direction": direction,
                    "period": result.period,
                    "current_value": result.current_value,
                    "prior_value": result.prior_value,
                    "delta_pct": result.delta_pct,
                },
            )
        )
    return events


def evaluate(
    summaries: Iterable[FinancialSummary],
    trends: Optional[Mapping[str, TrendResult]] = None,
    pending_counts: Optional[Mapping[str, int]] = None,
    deadlines: Optional[Mapping[str, Optional[date]]] = None,
    *,
    today: Optional[date] = None,
    computed_at: Optional[datetime] = None,
    deadline_threshold_days: int = DEFAULT_DEADLINE_DAYS,
) -> List[TriggerEvent]:
    """
    Apply the rule table. Conditions of different kinds on the same project
    produce independent events; within the budget ladder only the highest
    rung is reported.

    Pass `computed_at` (and `today`) to make repeated passes comparable.
    """
    now = computed_at or datetime.now(timezone.utc)
    as_of = today or now.date()
    summaries_list = list(summaries)
    names = {s.project_id: s.name for s in summaries_list}

    events: List[TriggerEvent] = []
    events.extend(budget_events(summaries_list, now))
    events.extend(
        deadline_events(
            deadlines or {},
            as_of,
            now,
            threshold_days=deadline_threshold_days,
            names=names,
        )
    )
    events.extend(pending_events(pending_counts or {}, now))
    events.extend(trend_events(trends or {}, now))
    return events
