from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple

from backend.app.intake.normalize import Employee, TimeEntry
from backend.app.rollup.costs import rate_index

Period = Literal["day", "week", "month"]
Metric = Literal["hours", "cost"]
Window = Tuple[date, date]

PERIODS = ("day", "week", "month")


@dataclass(frozen=True)
class TrendResult:
    current_value: float
    prior_value: float
    delta_pct: float
    period: Optional[str] = None
    period_start: Optional[date] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "current_value": round(self.current_value, 2),
            "prior_value": round(self.prior_value, 2),
            "delta_pct": round(self.delta_pct, 2),
            "period": self.period,
            "period_start": self.period_start.isoformat() if self.period_start else None,
        }


def trend(current_period: float, prior_period: float) -> TrendResult:
    """
    Signed percentage change from the prior period to the current one.

    prior = 0 and current > 0 counts as fully new activity (+100%);
    prior = 0 and current = 0 is flat (0%).
    """
    if prior_period > 0:
        delta = (current_period - prior_period) / prior_period * 100
    else:
        delta = 100.0 if current_period > 0 else 0.0
    return TrendResult(current_value=current_period, prior_value=prior_period, delta_pct=delta)


def period_window(reference: date, period: Period = "week", week_start: int = 0) -> Window:
    """Calendar period containing `reference`. week_start: 0=Monday .. 6=Sunday."""
    if period == "day":
        return reference, reference
    if period == "week":
        start = reference - timedelta(days=(reference.weekday() - week_start) % 7)
        return start, start + timedelta(days=6)
    if period == "month":
        last = calendar.monthrange(reference.year, reference.month)[1]
        return reference.replace(day=1), reference.replace(day=last)
    raise ValueError(f"unknown period {period!r}")


def prior_window(window: Window, period: Period = "week") -> Window:
    start, end = window
    if period == "day":
        prior = start - timedelta(days=1)
        return prior, prior
    if period == "week":
        return start - timedelta(days=7), end - timedelta(days=7)
    if period == "month":
        return period_window(start - timedelta(days=1), "month")
    raise ValueError(f"unknown period {period!r}")


def _in_window(entry: TimeEntry, window: Window) -> bool:
    return entry.date is not None and window[0] <= entry.date <= window[1]


def _window_value(
    entries: List[TimeEntry],
    window: Window,
    metric: Metric,
    rates: Dict[str, float],
) -> float:
    hours_by_employee: Dict[str, float] = defaultdict(float)
    for entry in entries:
        if entry.approved and _in_window(entry, window):
            hours_by_employee[entry.employee_id] += entry.hours
    if metric == "hours":
        return sum(hours_by_employee.values())
    return sum(hours * rates.get(employee_id, 0.0) for employee_id, hours in hours_by_employee.items())


def period_trend(
    entries: Iterable[TimeEntry],
    employees: Iterable[Employee] = (),
    *,
    reference: date,
    period: Period = "week",
    week_start: int = 0,
    metric: Metric = "hours",
) -> TrendResult:
    """
    Compare the period containing `reference` with the one before it.

    Only approved, dated entries participate. Cost is computed per employee
    from summed window hours.
    """
    entries_list = list(entries)
    rates = rate_index(employees) if metric == "cost" else {}
    current = period_window(reference, period, week_start)
    prior = prior_window(current, period)

    result = trend(
        _window_value(entries_list, current, metric, rates),
        _window_value(entries_list, prior, metric, rates),
    )
    return TrendResult(
        current_value=result.current_value,
        prior_value=result.prior_value,
        delta_pct=result.delta_pct,
        period=period,
        period_start=current[0],
    )


def daily_hours(entries: Iterable[TimeEntry], *, today: date, days: int = 7) -> List[Dict[str, Any]]:
    """Approved hours per day for the last `days` days, oldest first."""
    start = today - timedelta(days=days - 1)
    totals: Dict[date, float] = defaultdict(float)
    for entry in entries:
        if entry.approved and entry.date is not None and start <= entry.date <= today:
            totals[entry.date] += entry.hours
    return [
        {"date": (start + timedelta(days=i)).isoformat(), "hours": round(totals[start + timedelta(days=i)], 2)}
        for i in range(days)
    ]
