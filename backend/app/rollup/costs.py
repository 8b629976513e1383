"""
Cost rollup.

Formula:
  hours(project, employee) = sum(entry.hours for approved entries)
  cost(project, employee)  = hours(project, employee) * employee.hourly_rate

Hours are summed first and multiplied once per group so fractional hours do not
drift through many small multiplications. Rates are the employee's current
rate; historical rate changes are not modelled.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from backend.app.intake.normalize import Employee, TimeEntry


class ContractViolation(ValueError):
    """Raised when data that normalization should have rejected reaches the rollup."""


@dataclass(frozen=True)
class CostRollup:
    project_id: str
    employee_id: str
    hours: float
    cost: float
    entry_count: int = 0
    rate_known: bool = True


@dataclass(frozen=True)
class HoursCost:
    hours: float
    cost: float
    entry_count: int


def rate_index(employees: Iterable[Employee]) -> Dict[str, float]:
    rates: Dict[str, float] = {}
    for employee in employees:
        if employee.hourly_rate < 0:
            raise ContractViolation(f"employee {employee.id} has negative hourly rate {employee.hourly_rate}")
        rates[employee.id] = employee.hourly_rate
    return rates


def rollup(entries: Iterable[TimeEntry], employees: Iterable[Employee]) -> List[CostRollup]:
    """
    Aggregate approved entries per (project, employee).

    - Unknown employee: hours still counted, cost 0.
    - Negative hours: ContractViolation (normalization drops these).
    - Output order carries no meaning.
    """
    rates = rate_index(employees)
    hours_by_key: Dict[Tuple[str, str], float] = defaultdict(float)
    counts: Dict[Tuple[str, str], int] = defaultdict(int)

    for entry in entries:
        if entry.hours < 0:
            raise ContractViolation(f"time entry {entry.id} has negative hours {entry.hours}")
        if not entry.approved:
            continue
        key = (entry.project_id, entry.employee_id)
        hours_by_key[key] += entry.hours
        counts[key] += 1

    out: List[CostRollup] = []
    for (project_id, employee_id), hours in hours_by_key.items():
        rate: Optional[float] = rates.get(employee_id)
        out.append(
            CostRollup(
                project_id=project_id,
                employee_id=employee_id,
                hours=hours,
                cost=hours * rate if rate is not None else 0.0,
                entry_count=counts[(project_id, employee_id)],
                rate_known=rate is not None,
            )
        )
    return out


def _totals_by(rollups: Iterable[CostRollup], attr: str) -> Dict[str, HoursCost]:
    hours: Dict[str, float] = defaultdict(float)
    cost: Dict[str, float] = defaultdict(float)
    count: Dict[str, int] = defaultdict(int)
    for row in rollups:
        key = getattr(row, attr)
        hours[key] += row.hours
        cost[key] += row.cost
        count[key] += row.entry_count
    return {key: HoursCost(hours=hours[key], cost=cost[key], entry_count=count[key]) for key in hours}


def totals_by_project(rollups: Iterable[CostRollup]) -> Dict[str, HoursCost]:
    return _totals_by(rollups, "project_id")


def totals_by_employee(rollups: Iterable[CostRollup]) -> Dict[str, HoursCost]:
    return _totals_by(rollups, "employee_id")
