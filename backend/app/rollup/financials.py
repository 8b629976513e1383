"""
Financial summaries built on top of cost rollups.

Sign convention: profit_loss > 0 is under budget (profit), < 0 is over budget.
Percentages are 0 when a project has no budget so every consumer can treat the
summary as total. Values are kept unrounded; as_dict() rounds to 2 decimals
for presentation.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from backend.app.intake.normalize import Employee, Project
from backend.app.rollup.costs import CostRollup


def _r2(value: float) -> float:
    return round(value, 2)


@dataclass(frozen=True)
class FinancialSummary:
    project_id: str
    fixed_cost: float
    actual_cost: float
    profit_loss: float
    profit_loss_pct: float
    utilization_pct: float
    total_hours: float = 0.0
    name: Optional[str] = None
    code: Optional[str] = None
    status: Optional[str] = None

    @property
    def has_budget(self) -> bool:
        return self.fixed_cost > 0

    @property
    def cost_variance_pct(self) -> float:
        return self.utilization_pct - 100 if self.has_budget else 0.0

    @property
    def is_profit(self) -> bool:
        return self.profit_loss > 0

    @property
    def is_loss(self) -> bool:
        return self.profit_loss < 0

    @property
    def is_break_even(self) -> bool:
        return self.profit_loss == 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "name": self.name,
            "code": self.code,
            "status": self.status,
            "fixed_cost": _r2(self.fixed_cost),
            "actual_cost": _r2(self.actual_cost),
            "total_hours": _r2(self.total_hours),
            "profit_loss": _r2(self.profit_loss),
            "profit_loss_pct": _r2(self.profit_loss_pct),
            "utilization_pct": _r2(self.utilization_pct),
            "cost_variance_pct": _r2(self.cost_variance_pct),
            "has_budget": self.has_budget,
            "is_profit": self.is_profit,
            "is_loss": self.is_loss,
            "is_break_even": self.is_break_even,
        }


def summarize(project: Project, rollups: Iterable[CostRollup]) -> FinancialSummary:
    """
    Derive the financial summary for one project.

    Formula:
      actual_cost     = sum(rollup.cost for rollups of this project)
      profit_loss     = budget - actual_cost
      profit_loss_pct = profit_loss / budget * 100   (0 without budget)
      utilization_pct = actual_cost / budget * 100   (0 without budget, no upper clamp)
    """
    actual_cost = 0.0
    total_hours = 0.0
    for row in rollups:
        if row.project_id != project.id:
            continue
        actual_cost += row.cost
        total_hours += row.hours

    fixed_cost = project.budget or 0.0
    profit_loss = fixed_cost - actual_cost
    if fixed_cost > 0:
        profit_loss_pct = profit_loss / fixed_cost * 100
        utilization_pct = max(actual_cost / fixed_cost * 100, 0.0)
    else:
        profit_loss_pct = 0.0
        utilization_pct = 0.0

    return FinancialSummary(
        project_id=project.id,
        fixed_cost=fixed_cost,
        actual_cost=actual_cost,
        profit_loss=profit_loss,
        profit_loss_pct=profit_loss_pct,
        utilization_pct=utilization_pct,
        total_hours=total_hours,
        name=project.name,
        code=project.code,
        status=project.status,
    )


def summarize_all(projects: Iterable[Project], rollups: Iterable[CostRollup]) -> List[FinancialSummary]:
    by_project: Dict[str, List[CostRollup]] = defaultdict(list)
    for row in rollups:
        by_project[row.project_id].append(row)
    return [summarize(project, by_project.get(project.id, [])) for project in projects]


# -------------------------
# Portfolio dashboard
# -------------------------

@dataclass(frozen=True)
class PortfolioSummary:
    total_projects: int
    total_fixed_cost: float
    total_actual_cost: float
    total_profit_loss: float
    total_hours: float
    profit_projects: int
    loss_projects: int
    break_even_projects: int
    top_profit: List[FinancialSummary] = field(default_factory=list)
    top_loss: List[FinancialSummary] = field(default_factory=list)

    @property
    def profit_margin(self) -> float:
        if self.total_fixed_cost > 0:
            return self.total_profit_loss / self.total_fixed_cost * 100
        return 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_projects": self.total_projects,
            "total_fixed_cost": _r2(self.total_fixed_cost),
            "total_actual_cost": _r2(self.total_actual_cost),
            "total_profit_loss": _r2(self.total_profit_loss),
            "total_hours": _r2(self.total_hours),
            "profit_projects": self.profit_projects,
            "loss_projects": self.loss_projects,
            "break_even_projects": self.break_even_projects,
            "profit_margin": _r2(self.profit_margin),
            "top_profit": [s.as_dict() for s in self.top_profit],
            "top_loss": [s.as_dict() for s in self.top_loss],
        }


def summarize_portfolio(summaries: Iterable[FinancialSummary], *, top_n: int = 5) -> PortfolioSummary:
    rows = list(summaries)
    profit = sorted((s for s in rows if s.is_profit), key=lambda s: s.profit_loss, reverse=True)
    loss = sorted((s for s in rows if s.is_loss), key=lambda s: s.profit_loss)
    return PortfolioSummary(
        total_projects=len(rows),
        total_fixed_cost=sum(s.fixed_cost for s in rows),
        total_actual_cost=sum(s.actual_cost for s in rows),
        total_profit_loss=sum(s.profit_loss for s in rows),
        total_hours=sum(s.total_hours for s in rows),
        profit_projects=len(profit),
        loss_projects=len(loss),
        break_even_projects=len(rows) - len(profit) - len(loss),
        top_profit=profit[:top_n],
        top_loss=loss[:top_n],
    )


# -------------------------
# Employee cost analysis
# -------------------------

@dataclass(frozen=True)
class EmployeeProjectCost:
    project_id: str
    hours: float
    cost: float
    project_budget: float
    project_profit_loss: float
    project_profit_loss_pct: float
    project_name: Optional[str] = None


@dataclass(frozen=True)
class EmployeeCost:
    employee_id: str
    total_hours: float
    total_cost: float
    entry_count: int
    projects: List[EmployeeProjectCost]
    name: Optional[str] = None
    hourly_rate: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "name": self.name,
            "hourly_rate": self.hourly_rate,
            "total_hours": _r2(self.total_hours),
            "total_cost": _r2(self.total_cost),
            "entry_count": self.entry_count,
            "projects": [
                {
                    "project_id": p.project_id,
                    "project_name": p.project_name,
                    "hours": _r2(p.hours),
                    "cost": _r2(p.cost),
                    "project_budget": _r2(p.project_budget),
                    "project_profit_loss": _r2(p.project_profit_loss),
                    "project_profit_loss_pct": _r2(p.project_profit_loss_pct),
                }
                for p in self.projects
            ],
        }


def employee_cost_analysis(
    rollups: Iterable[CostRollup],
    employees: Iterable[Employee] = (),
    projects: Iterable[Project] = (),
) -> List[EmployeeCost]:
    """
    Per-employee cost across projects, most expensive first.

    The per-project P&L compares only this employee's cost to the project
    budget, which is how the cost analysis screen reads it.
    """
    employee_map = {e.id: e for e in employees}
    project_map = {p.id: p for p in projects}
    grouped: Dict[str, List[CostRollup]] = defaultdict(list)
    for row in rollups:
        grouped[row.employee_id].append(row)

    out: List[EmployeeCost] = []
    for employee_id, rows in grouped.items():
        breakdown: List[EmployeeProjectCost] = []
        for row in rows:
            project = project_map.get(row.project_id)
            budget = project.budget if project else 0.0
            pl = budget - row.cost
            breakdown.append(
                EmployeeProjectCost(
                    project_id=row.project_id,
                    hours=row.hours,
                    cost=row.cost,
                    project_budget=budget,
                    project_profit_loss=pl,
                    project_profit_loss_pct=pl / budget * 100 if budget > 0 else 0.0,
                    project_name=project.name if project else None,
                )
            )
        employee = employee_map.get(employee_id)
        out.append(
            EmployeeCost(
                employee_id=employee_id,
                total_hours=sum(r.hours for r in rows),
                total_cost=sum(r.cost for r in rows),
                entry_count=sum(r.entry_count for r in rows),
                projects=breakdown,
                name=employee.name if employee else None,
                hourly_rate=employee.hourly_rate if employee else None,
            )
        )
    out.sort(key=lambda e: e.total_cost, reverse=True)
    return out
