from datetime import date
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.app.intake.normalize import Employee, Project
from backend.app.rollup.costs import CostRollup
from backend.app.rollup.financials import (
    employee_cost_analysis,
    summarize,
    summarize_all,
    summarize_portfolio,
)


def _project(project_id="p1", budget=1000.0, name=None):
    return Project(id=project_id, budget=budget, end_date=date(2026, 12, 31), name=name or project_id)


def _row(project_id, employee_id, hours, cost):
    return CostRollup(project_id=project_id, employee_id=employee_id, hours=hours, cost=cost, entry_count=1)


def test_profit_loss_is_budget_minus_actual_cost():
    rows = [_row("p1", "u1", 3.3, 333.33), _row("p1", "u2", 1.1, 111.11), _row("p2", "u1", 9, 900)]
    summary = summarize(_project(budget=1000.0), rows)

    assert summary.actual_cost == 333.33 + 111.11
    assert summary.profit_loss == summary.fixed_cost - summary.actual_cost
    assert summary.total_hours == 3.3 + 1.1
    assert summary.is_profit


def test_over_budget_utilization_is_not_clamped():
    summary = summarize(_project(budget=1000.0), [_row("p1", "u1", 10, 1500)])
    assert summary.utilization_pct == 150.0
    assert summary.profit_loss == -500
    assert summary.profit_loss_pct == -50.0
    assert summary.cost_variance_pct == 50.0
    assert summary.is_loss


def test_zero_budget_yields_zero_percentages():
    summary = summarize(_project(budget=0.0), [_row("p1", "u1", 10, 1500)])
    assert summary.utilization_pct == 0
    assert summary.profit_loss_pct == 0
    assert summary.cost_variance_pct == 0
    assert summary.has_budget is False
    assert summary.profit_loss == -1500


def test_as_dict_rounds_only_for_presentation():
    summary = summarize(_project(budget=3.0), [_row("p1", "u1", 1, 1.0)])
    assert summary.utilization_pct == 1.0 / 3.0 * 100
    assert summary.as_dict()["utilization_pct"] == 33.33
    assert summary.as_dict()["profit_loss"] == 2.0


def test_summarize_all_covers_projects_without_entries():
    summaries = summarize_all([_project("p1"), _project("p2")], [_row("p1", "u1", 1, 10)])
    by_id = {s.project_id: s for s in summaries}
    assert by_id["p2"].actual_cost == 0
    assert by_id["p2"].is_profit


def test_portfolio_totals_and_rankings():
    summaries = summarize_all(
        [_project("p1", 1000), _project("p2", 500), _project("p3", 0)],
        [_row("p1", "u1", 1, 400), _row("p2", "u1", 1, 800)],
    )
    portfolio = summarize_portfolio(summaries)

    assert portfolio.total_projects == 3
    assert portfolio.total_fixed_cost == 1500
    assert portfolio.total_actual_cost == 1200
    assert portfolio.total_profit_loss == 300
    assert portfolio.profit_projects == 1
    assert portfolio.loss_projects == 1
    assert portfolio.break_even_projects == 1
    assert portfolio.profit_margin == 20.0
    assert [s.project_id for s in portfolio.top_profit] == ["p1"]
    assert [s.project_id for s in portfolio.top_loss] == ["p2"]


def test_employee_cost_analysis_orders_by_cost():
    rows = [_row("p1", "u1", 2, 200), _row("p2", "u1", 1, 100), _row("p1", "u2", 10, 500)]
    analysis = employee_cost_analysis(
        rows,
        [Employee(id="u1", hourly_rate=100, name="Asha"), Employee(id="u2", hourly_rate=50)],
        [_project("p1", 1000), _project("p2", 0)],
    )

    assert [e.employee_id for e in analysis] == ["u2", "u1"]
    asha = analysis[1]
    assert asha.name == "Asha"
    assert asha.total_cost == 300
    by_project = {p.project_id: p for p in asha.projects}
    assert by_project["p1"].project_profit_loss == 800
    assert by_project["p1"].project_profit_loss_pct == 80.0
    assert by_project["p2"].project_profit_loss_pct == 0
