from datetime import date
from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.app.intake.normalize import Employee, TimeEntry
from backend.app.rollup.costs import ContractViolation, rollup, totals_by_employee, totals_by_project


def _entry(entry_id, hours, *, employee="u1", project="p1", approved=True):
    return TimeEntry(
        id=entry_id,
        employee_id=employee,
        project_id=project,
        date=date(2026, 10, 12),
        hours=hours,
        approved=approved,
    )


def test_hours_are_summed_before_multiplying_by_rate():
    rows = rollup(
        [_entry("t1", 3), _entry("t2", 2), _entry("t3", 5)],
        [Employee(id="u1", hourly_rate=500)],
    )
    assert len(rows) == 1
    assert rows[0].hours == 10
    assert rows[0].cost == 5000
    assert rows[0].entry_count == 3


def test_fractional_hours_match_sum_then_multiply():
    hours = [0.1, 0.2, 0.7, 1.15, 2.35]
    rate = 137.5
    rows = rollup([_entry(f"t{i}", h) for i, h in enumerate(hours)], [Employee(id="u1", hourly_rate=rate)])

    expected_hours = 0.0
    for h in hours:
        expected_hours += h
    assert rows[0].cost == expected_hours * rate


def test_only_approved_entries_contribute():
    rows = rollup(
        [_entry("t1", 4), _entry("t2", 6, approved=False)],
        [Employee(id="u1", hourly_rate=10)],
    )
    assert rows[0].hours == 4
    assert rows[0].cost == 40


def test_unknown_employee_keeps_hours_with_zero_cost():
    rows = rollup([_entry("t1", 8, employee="ghost")], [Employee(id="u1", hourly_rate=10)])
    assert rows[0].hours == 8
    assert rows[0].cost == 0
    assert rows[0].rate_known is False


def test_groups_by_project_and_employee():
    rows = rollup(
        [
            _entry("t1", 2, employee="u1", project="p1"),
            _entry("t2", 3, employee="u2", project="p1"),
            _entry("t3", 4, employee="u1", project="p2"),
        ],
        [Employee(id="u1", hourly_rate=100), Employee(id="u2", hourly_rate=50)],
    )
    by_key = {(r.project_id, r.employee_id): r for r in rows}
    assert set(by_key) == {("p1", "u1"), ("p1", "u2"), ("p2", "u1")}
    assert by_key[("p1", "u2")].cost == 150

    projects = totals_by_project(rows)
    assert projects["p1"].hours == 5
    assert projects["p1"].cost == 350
    employees = totals_by_employee(rows)
    assert employees["u1"].hours == 6
    assert employees["u1"].cost == 600


def test_costs_are_never_negative():
    rows = rollup([_entry("t1", 0), _entry("t2", 1.5)], [Employee(id="u1", hourly_rate=0)])
    assert all(r.cost >= 0 for r in rows)


def test_negative_hours_reaching_rollup_is_a_contract_violation():
    with pytest.raises(ContractViolation):
        rollup([_entry("t1", -1)], [Employee(id="u1", hourly_rate=10)])


def test_negative_rate_is_a_contract_violation():
    with pytest.raises(ContractViolation):
        rollup([_entry("t1", 1)], [Employee(id="u1", hourly_rate=-5)])
