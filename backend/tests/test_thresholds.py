from datetime import date, datetime, timedelta, timezone
from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.app.alerts.thresholds import budget_rung, check_deadline, evaluate, should_send_budget_alert
from backend.app.rollup.financials import FinancialSummary
from backend.app.rollup.trends import TrendResult

TODAY = date(2026, 10, 18)
NOW = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def _summary(project_id, utilization, budget=1000.0):
    actual = budget * utilization / 100 if budget else 500.0
    return FinancialSummary(
        project_id=project_id,
        fixed_cost=budget,
        actual_cost=actual,
        profit_loss=budget - actual,
        profit_loss_pct=(budget - actual) / budget * 100 if budget else 0.0,
        utilization_pct=utilization if budget else 0.0,
        name=f"Project {project_id}",
    )


@pytest.mark.parametrize(
    "utilization,expected",
    [
        (79.99, None),
        (80.0, (80.0, "info")),
        (89.99, (80.0, "info")),
        (90.0, (90.0, "warning")),
        (100.0, (100.0, "danger")),
        (250.0, (100.0, "danger")),
    ],
)
def test_budget_ladder(utilization, expected):
    assert budget_rung(utilization) == expected
    assert should_send_budget_alert(utilization) is (expected is not None)


def test_only_highest_budget_rung_is_reported():
    events = evaluate([_summary("p1", 105.0)], today=TODAY, computed_at=NOW)
    assert len(events) == 1
    assert events[0].kind == "BudgetAlert"
    assert events[0].severity == "danger"
    assert events[0].bucket == "100"


def test_projects_without_budget_never_raise_budget_alerts():
    assert evaluate([_summary("p1", 0.0, budget=0.0)], today=TODAY, computed_at=NOW) == []


def test_deadline_check():
    in_five = check_deadline(TODAY + timedelta(days=5), TODAY, 7)
    assert in_five.should_alert is True
    assert in_five.days_remaining == 5

    assert check_deadline(TODAY + timedelta(days=10), TODAY, 7).should_alert is False

    missing = check_deadline(None, TODAY, 7)
    assert missing.should_alert is False
    assert missing.days_remaining == 0


def test_due_today_and_past_due_do_not_alert():
    assert check_deadline(TODAY, TODAY).should_alert is False
    past = check_deadline(TODAY - timedelta(days=3), TODAY)
    assert past.should_alert is False
    assert past.days_remaining == -3


def test_deadline_threshold_is_inclusive():
    assert check_deadline(TODAY + timedelta(days=7), TODAY, 7).should_alert is True
    assert check_deadline(TODAY + timedelta(days=8), TODAY, 7).should_alert is False


def test_pending_approvals_fire_only_when_positive():
    events = evaluate([], pending_counts={"u1": 3, "u2": 0}, today=TODAY, computed_at=NOW)
    assert [(e.kind, e.subject_id, e.severity) for e in events] == [("PendingApprovalAlert", "u1", "warning")]
    assert events[0].context["pending_count"] == 3


def test_trend_alerts_only_outside_ten_percent_band():
    trends = {
        "down": TrendResult(current_value=80, prior_value=100, delta_pct=-20.0),
        "flat_low": TrendResult(current_value=90, prior_value=100, delta_pct=-10.0),
        "flat_high": TrendResult(current_value=110, prior_value=100, delta_pct=10.0),
        "up": TrendResult(current_value=150, prior_value=100, delta_pct=50.0, period_start=date(2026, 10, 12)),
    }
    events = {e.subject_id: e for e in evaluate([], trends=trends, today=TODAY, computed_at=NOW)}
    assert set(events) == {"down", "up"}
    assert events["down"].severity == "info"
    assert events["down"].bucket == "down"
    assert events["up"].severity == "success"
    assert events["up"].bucket == "up@2026-10-12"


def test_conditions_of_different_kinds_are_independent():
    events = evaluate(
        [_summary("p1", 92.0)],
        deadlines={"p1": TODAY + timedelta(days=2)},
        today=TODAY,
        computed_at=NOW,
    )
    kinds = sorted(e.kind for e in events)
    assert kinds == ["BudgetAlert", "DeadlineAlert"]
    deadline = next(e for e in events if e.kind == "DeadlineAlert")
    assert deadline.subject_name == "Project p1"
    assert deadline.context["days_remaining"] == 2
    assert deadline.bucket == "7d@2026-10-20"


def test_evaluation_is_repeatable():
    args = ([_summary("p1", 95.0), _summary("p2", 50.0)],)
    kwargs = dict(
        pending_counts={"u1": 2},
        deadlines={"p2": TODAY + timedelta(days=1)},
        today=TODAY,
        computed_at=NOW,
    )
    assert evaluate(*args, **kwargs) == evaluate(*args, **kwargs)
