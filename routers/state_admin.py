"""
State-level oversight: SLA escalations across all districts and per-district
analytics for the state dashboard charts.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from auth import get_current_state_admin
from database import get_db
from escalation import district_analytics, escalated_reports

router = APIRouter(
    prefix="/api/state-admin",
    tags=["state-admin"],
    dependencies=[Depends(get_current_state_admin)],
)


@router.get("/escalated-reports")
def get_escalated_reports(db: Session = Depends(get_db)):
    return escalated_reports(db)


@router.get("/analytics")
def get_analytics(
    district_id: int = Query(..., alias="districtId"),
    weeks:       int = Query(8, ge=1, le=52),
    db: Session = Depends(get_db),
):
    """statusData feeds the pie chart, frequencyData the weekly line chart."""
    return district_analytics(db, district_id, weeks=weeks)
