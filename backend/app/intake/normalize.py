"""
Intake - normalization layer.

Responsibility:
- Convert raw time-entry, project and employee records (dicts from the CRUD
  layer, camelCase or snake_case) into typed, downstream-safe records.
- Be tolerant of dirty upstream data:
  - numbers that fail to parse to a finite value become 0
  - unparseable dates become None (excluded from windowed aggregations only)
  - records without an identity are skipped

Design notes:
- This module must be PURE:
  - no file IO
  - no network calls
  - no global state mutation
- Nothing here raises for bad data. Every substitution is recorded as an Issue
  so the caller can surface a data-quality report.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, List, Literal, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


# -------------------------
# Types
# -------------------------

IssueKind = Literal["data_quality", "configuration_gap", "lookup_miss"]
RecordType = Literal["time_entry", "project", "employee"]

APPROVED_STATUS = "APPROVED"
PENDING_STATUS = "SUBMITTED"

_FLAG_WORDS = {"true": True, "yes": True, "1": True, "false": False, "no": False, "0": False}


@dataclass(frozen=True)
class Issue:
    """
    A non-fatal problem found while normalizing or aggregating.

    kind:
      - data_quality: unparseable number/date, negative hours
      - configuration_gap: missing budget or hourly rate
      - lookup_miss: entry references an unknown employee/project
    """
    kind: IssueKind
    record_type: RecordType
    record_id: Optional[str]
    field: str
    detail: str


@dataclass(frozen=True)
class TimeEntry:
    id: str
    employee_id: str
    project_id: str
    date: Optional[date]       # None when the source date was unparseable
    hours: float
    approved: bool
    pending: bool = False      # submitted and awaiting approval


@dataclass(frozen=True)
class Employee:
    id: str
    hourly_rate: float
    name: Optional[str] = None
    role: Optional[str] = None


@dataclass(frozen=True)
class Project:
    id: str
    budget: float              # 0 means "no budget set"
    end_date: Optional[date]
    status: Optional[str] = None
    name: Optional[str] = None
    code: Optional[str] = None
    manager_id: Optional[str] = None
    member_ids: Tuple[str, ...] = ()
    archived: bool = False

    @property
    def audience(self) -> List[str]:
        """Manager first, then members, without duplicates."""
        out: List[str] = []
        for user_id in (self.manager_id, *self.member_ids):
            if user_id and user_id not in out:
                out.append(user_id)
        return out


@dataclass
class NormalizedBatch:
    entries: List[TimeEntry] = field(default_factory=list)
    projects: List[Project] = field(default_factory=list)
    employees: List[Employee] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)


# -------------------------
# Field helpers
# -------------------------

def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _as_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a finite float. Returns None when the value cannot be parsed.

    Accepts ints/floats, numeric strings ("12.5", " 1,200 ") and Decimals.
    bool is rejected; True is not an amount.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_flag(value: Any) -> Optional[bool]:
    """Parse a boolean flag from bool, 0/1 or yes/no text. None when unrecognised."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        return _FLAG_WORDS.get(value.strip().lower())
    return None


def parse_date(value: Any) -> Optional[date]:
    """
    Dual-path date parsing: native date/datetime objects or ISO strings.

    ISO strings may carry a time component and a trailing "Z".
    Returns None when the value is missing or unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10]) if len(text) > 10 and text[10] in "T " else date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _coerce(
    raw: Mapping[str, Any],
    keys: Tuple[str, ...],
    *,
    record_type: RecordType,
    record_id: Optional[str],
    issues: List[Issue],
    missing_kind: IssueKind,
) -> float:
    value = _pick(raw, *keys)
    number = parse_number(value)
    if number is not None:
        return number
    if value is None:
        issues.append(Issue(missing_kind, record_type, record_id, keys[0], "missing; treated as 0"))
    else:
        issues.append(Issue("data_quality", record_type, record_id, keys[0], f"unparseable value {value!r}; treated as 0"))
    return 0.0


def _is_approved(raw: Mapping[str, Any]) -> bool:
    flag = parse_flag(raw.get("approved"))
    if flag is not None:
        return flag
    status = str(raw.get("status") or "").strip().upper()
    return status == APPROVED_STATUS


def _is_pending(raw: Mapping[str, Any], approved: bool) -> bool:
    if approved:
        return False
    flag = parse_flag(raw.get("pending"))
    if flag is not None:
        return flag
    status = str(raw.get("status") or "").strip().upper()
    return status == PENDING_STATUS


# -------------------------
# Record normalizers
# -------------------------

def normalize_time_entry(raw: Mapping[str, Any], issues: Optional[List[Issue]] = None) -> Optional[TimeEntry]:
    """
    Normalize one raw time entry. Returns None when the entry must be skipped.

    Skipped: missing id/employee/project reference, negative hours.
    """
    sink = issues if issues is not None else []
    entry_id = _as_id(_pick(raw, "id"))
    employee_id = _as_id(_pick(raw, "employeeId", "employee_id", "userId", "user_id"))
    project_id = _as_id(_pick(raw, "projectId", "project_id"))

    if not entry_id or not employee_id or not project_id:
        sink.append(Issue("data_quality", "time_entry", entry_id, "id", "missing identity; record skipped"))
        return None

    hours = _coerce(
        raw,
        ("hours",),
        record_type="time_entry",
        record_id=entry_id,
        issues=sink,
        missing_kind="data_quality",
    )
    if hours < 0:
        sink.append(Issue("data_quality", "time_entry", entry_id, "hours", f"negative hours {hours}; record skipped"))
        return None

    raw_date = _pick(raw, "date")
    entry_date = parse_date(raw_date)
    if entry_date is None:
        sink.append(
            Issue("data_quality", "time_entry", entry_id, "date", f"unparseable date {raw_date!r}; excluded from windows")
        )

    approved = _is_approved(raw)
    return TimeEntry(
        id=entry_id,
        employee_id=employee_id,
        project_id=project_id,
        date=entry_date,
        hours=hours,
        approved=approved,
        pending=_is_pending(raw, approved),
    )


def normalize_employee(raw: Mapping[str, Any], issues: Optional[List[Issue]] = None) -> Optional[Employee]:
    sink = issues if issues is not None else []
    employee_id = _as_id(_pick(raw, "id"))
    if not employee_id:
        sink.append(Issue("data_quality", "employee", None, "id", "missing identity; record skipped"))
        return None

    rate = _coerce(
        raw,
        ("hourlyRate", "hourly_rate"),
        record_type="employee",
        record_id=employee_id,
        issues=sink,
        missing_kind="configuration_gap",
    )
    if rate < 0:
        sink.append(Issue("data_quality", "employee", employee_id, "hourlyRate", f"negative rate {rate}; treated as 0"))
        rate = 0.0

    first = _pick(raw, "firstName", "first_name")
    last = _pick(raw, "lastName", "last_name")
    name = _pick(raw, "name") or " ".join(str(p) for p in (first, last) if p) or None
    return Employee(id=employee_id, hourly_rate=rate, name=name, role=_pick(raw, "role"))


def normalize_project(raw: Mapping[str, Any], issues: Optional[List[Issue]] = None) -> Optional[Project]:
    sink = issues if issues is not None else []
    project_id = _as_id(_pick(raw, "id"))
    if not project_id:
        sink.append(Issue("data_quality", "project", None, "id", "missing identity; record skipped"))
        return None

    budget = _coerce(
        raw,
        ("budget",),
        record_type="project",
        record_id=project_id,
        issues=sink,
        missing_kind="configuration_gap",
    )
    if budget < 0:
        sink.append(Issue("data_quality", "project", project_id, "budget", f"negative budget {budget}; treated as 0"))
        budget = 0.0

    raw_end = _pick(raw, "endDate", "end_date")
    end_date = parse_date(raw_end)
    if raw_end is not None and end_date is None:
        sink.append(Issue("data_quality", "project", project_id, "endDate", f"unparseable date {raw_end!r}; treated as unset"))

    raw_archived = _pick(raw, "isArchived", "archived")
    archived = parse_flag(raw_archived)
    if archived is None:
        if raw_archived is not None:
            sink.append(Issue("data_quality", "project", project_id, "isArchived", f"unparseable flag {raw_archived!r}; treated as false"))
        archived = False

    members = _pick(raw, "memberIds", "member_ids") or []
    member_ids = tuple(m for m in (_as_id(v) for v in members) if m)

    return Project(
        id=project_id,
        budget=budget,
        end_date=end_date,
        status=_pick(raw, "status"),
        name=_pick(raw, "name"),
        code=_pick(raw, "code"),
        manager_id=_as_id(_pick(raw, "managerId", "manager_id")),
        member_ids=member_ids,
        archived=archived,
    )


def normalize_batch(
    raw_entries: Iterable[Mapping[str, Any]],
    raw_projects: Iterable[Mapping[str, Any]] = (),
    raw_employees: Iterable[Mapping[str, Any]] = (),
) -> NormalizedBatch:
    """
    Normalize a full refresh worth of records.

    Entries referencing employees or projects missing from the batch are kept
    (their hours still count) and reported as lookup misses.
    """
    batch = NormalizedBatch()
    for raw in raw_employees:
        employee = normalize_employee(raw, batch.issues)
        if employee is not None:
            batch.employees.append(employee)
    for raw in raw_projects:
        project = normalize_project(raw, batch.issues)
        if project is not None:
            batch.projects.append(project)
    for raw in raw_entries:
        entry = normalize_time_entry(raw, batch.issues)
        if entry is not None:
            batch.entries.append(entry)

    known_employees = {e.id for e in batch.employees}
    known_projects = {p.id for p in batch.projects}
    for entry in batch.entries:
        if entry.employee_id not in known_employees:
            batch.issues.append(
                Issue("lookup_miss", "time_entry", entry.id, "employeeId", f"unknown employee {entry.employee_id}; cost 0")
            )
        if known_projects and entry.project_id not in known_projects:
            batch.issues.append(
                Issue("lookup_miss", "time_entry", entry.id, "projectId", f"unknown project {entry.project_id}")
            )

    if batch.issues:
        logger.warning(
            "Normalization recorded %s issue(s) across %s entries, %s projects, %s employees",
            len(batch.issues),
            len(batch.entries),
            len(batch.projects),
            len(batch.employees),
        )
    return batch
