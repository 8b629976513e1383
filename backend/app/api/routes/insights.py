from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.app.api import config
from backend.app.db import get_db
from backend.app.intake.normalize import normalize_batch
from backend.app.models import ALERT_KEY_LENGTH
from backend.app.rollup.costs import rollup
from backend.app.rollup.financials import employee_cost_analysis
from backend.app.services import dismissal_service, insights_service

router = APIRouter(prefix="/api/insights", tags=["insights"])

Role = Literal["SUPER_ADMIN", "ADMIN", "PROJECT_MANAGER", "TEAM_MEMBER", "CLIENT"]


class ViewerIn(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    role: Role = "TEAM_MEMBER"


class RecordsIn(BaseModel):
    # Records are passed through untyped; the normalizer owns coercion.
    entries: List[Dict[str, Any]] = Field(default_factory=list)
    projects: List[Dict[str, Any]] = Field(default_factory=list)
    employees: List[Dict[str, Any]] = Field(default_factory=list)


class InsightsRunIn(RecordsIn):
    viewer: ViewerIn
    today: Optional[date] = None
    deadline_days: Optional[int] = Field(default=None, ge=1, le=365)
    period: Optional[Literal["day", "week", "month"]] = None


class InsightsRunOut(BaseModel):
    summaries: List[Dict[str, Any]]
    portfolio: Dict[str, Any]
    trend: Dict[str, Any]
    daily_hours: List[Dict[str, Any]]
    notifications: List[Dict[str, Any]]
    issues: List[Dict[str, Any]]
    meta: Dict[str, Any]


class DismissIn(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    alert_key: str = Field(..., min_length=5, max_length=ALERT_KEY_LENGTH)
    actor: Optional[str] = Field(default=None, max_length=64)


class DismissalOut(BaseModel):
    user_id: str
    alert_key: str
    kind: str
    subject_id: str
    bucket: str
    actor: Optional[str] = None
    dismissed_at: Optional[str] = None


@router.post("/run", response_model=InsightsRunOut)
def run(req: InsightsRunIn, db: Session = Depends(get_db)):
    viewer = insights_service.Viewer(user_id=req.viewer.user_id, role=req.viewer.role)
    result = insights_service.run_insights(
        req.entries,
        req.projects,
        req.employees,
        viewer=viewer,
        today=req.today,
        store=dismissal_service.dismissal_store(db, viewer.user_id),
        deadline_threshold_days=req.deadline_days or config.deadline_alert_days(),
        period=req.period or config.trend_period(),
        week_start=config.week_start_day(),
    )
    return result.as_dict()


@router.post("/employee-costs", response_model=List[Dict[str, Any]])
def employee_costs(req: RecordsIn):
    batch = normalize_batch(req.entries, req.projects, req.employees)
    rows = employee_cost_analysis(rollup(batch.entries, batch.employees), batch.employees, batch.projects)
    return [row.as_dict() for row in rows]


@router.get("/dismissals", response_model=List[DismissalOut])
def list_dismissals(
    user_id: str = Query(..., min_length=1, max_length=64),
    kind: Optional[str] = Query(default=None, max_length=40),
    db: Session = Depends(get_db),
):
    return dismissal_service.list_dismissals(db, user_id, kind=kind)


@router.post("/dismissals", response_model=DismissalOut)
def dismiss(req: DismissIn, db: Session = Depends(get_db)):
    return dismissal_service.dismiss_alert(db, req.user_id, req.alert_key, actor=req.actor)


@router.delete("/dismissals/{alert_key:path}", response_model=DismissalOut)
def restore(
    alert_key: str,
    user_id: str = Query(..., min_length=1, max_length=64),
    db: Session = Depends(get_db),
):
    return dismissal_service.restore_alert(db, user_id, alert_key)
