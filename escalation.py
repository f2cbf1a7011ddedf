"""
State-level read-only queries: SLA escalations and per-district analytics.
"""
from datetime import datetime, time, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from config import ESCALATION_MIN_AGE_DAYS, ESCALATION_MIN_REPORTS
from errors import NotFoundError
from models import Department, District, MergedReport, RawReport, REPORT_STATUSES, merged_report_dict, utcnow


def escalated_reports(db: Session, now: datetime | None = None) -> list[dict]:
    """
    Merged reports with more than ESCALATION_MIN_REPORTS submissions, not
    resolved, and opened more than ESCALATION_MIN_AGE_DAYS ago. Oldest first.
    """
    cutoff = (now or utcnow()) - timedelta(days=ESCALATION_MIN_AGE_DAYS)
    rows = (
        db.query(MergedReport, Department.name)
        .outerjoin(Department, Department.id == MergedReport.department_id)
        .filter(
            MergedReport.nos > ESCALATION_MIN_REPORTS,
            MergedReport.status != "resolved",
            MergedReport.created_at < cutoff,
        )
        .order_by(MergedReport.created_at.asc(), MergedReport.id.asc())
        .all()
    )
    return [merged_report_dict(r, dept) for r, dept in rows]


def _week_start(ts: datetime):
    return (ts - timedelta(days=ts.weekday())).date()


def district_analytics(db: Session, district_id: int, weeks: int = 8, now: datetime | None = None) -> dict:
    """
    statusData:    merged report counts per status for the district
    frequencyData: raw submissions per week (Monday-based), oldest week first
    """
    district = db.get(District, district_id)
    if district is None:
        raise NotFoundError("District not found")

    counts = dict(
        db.query(MergedReport.status, func.count(MergedReport.id))
        .filter(MergedReport.district == district.name)
        .group_by(MergedReport.status)
        .all()
    )
    status_data = {s: counts.get(s, 0) for s in REPORT_STATUSES}

    current = _week_start(now or utcnow())
    starts  = [current - timedelta(weeks=i) for i in range(weeks - 1, -1, -1)]
    buckets = dict.fromkeys(starts, 0)

    created = (
        db.query(RawReport.created_at)
        .filter(
            RawReport.district == district.name,
            RawReport.created_at >= datetime.combine(starts[0], time.min),
        )
        .all()
    )
    for (ts,) in created:
        week = _week_start(ts)
        if week in buckets:
            buckets[week] += 1

    return {
        "statusData": status_data,
        "frequencyData": {
            "labels": [s.isoformat() for s in starts],
            "data":   [buckets[s] for s in starts],
        },
    }
