"""
Admin-side status/department changes on merged reports.

Any status may move to any other; the check is a plain callable so a stricter
policy can be passed in without touching this module. Resolved reports are
kept, only flagged, since analytics counts them by status.
"""
import logging
from typing import Callable, NamedTuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import RESOLUTION_POINTS
from errors import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from models import Citizen, Department, MergedReport, RawReport, REPORT_STATUSES, StatusLog, utcnow

logger = logging.getLogger(__name__)

TransitionPolicy = Callable[[str, str], bool]


class AdminPrincipal(NamedTuple):
    id: int
    district_id: int
    district_name: str


class UpdateResult(NamedTuple):
    report: MergedReport
    newly_resolved: bool
    push_tokens: list[str]


def allow_any_transition(current: str, new: str) -> bool:
    return True


def _award_points(db: Session, report_id: int) -> list[str]:
    """Credit every distinct contributor once; returns their push tokens."""
    citizen_ids = [
        row[0]
        for row in db.query(RawReport.citizen_id)
        .filter(RawReport.merged_report_id == report_id)
        .distinct()
        .all()
    ]
    if not citizen_ids:
        return []
    (
        db.query(Citizen)
        .filter(Citizen.id.in_(citizen_ids))
        .update({Citizen.points: Citizen.points + RESOLUTION_POINTS}, synchronize_session=False)
    )
    tokens = (
        db.query(Citizen.push_token)
        .filter(Citizen.id.in_(citizen_ids), Citizen.push_token.isnot(None))
        .all()
    )
    return [t[0] for t in tokens]


def get_report_in_district(db: Session, admin: AdminPrincipal, report_id: int) -> MergedReport:
    report = db.get(MergedReport, report_id)
    if report is None:
        raise NotFoundError("Report not found")
    if report.district != admin.district_name:
        logger.warning("Admin %d (district %s) denied access to report %d", admin.id, admin.district_name, report_id)
        raise AccessDeniedError()
    return report


def update_report(
    db: Session,
    admin: AdminPrincipal,
    report_id: int,
    status: str | None,
    department_id: int | None = None,
    transition_policy: TransitionPolicy = allow_any_transition,
) -> UpdateResult:
    report = get_report_in_district(db, admin, report_id)

    if not status:
        raise ValidationError("Status is required.")
    if status not in REPORT_STATUSES:
        raise ValidationError(f"Invalid status '{status}'")
    if not transition_policy(report.status, status):
        raise ValidationError(f"Cannot move a report from '{report.status}' to '{status}'")
    if department_id is not None and db.get(Department, department_id) is None:
        raise NotFoundError("Department not found")

    previous = report.status
    try:
        report.status = status
        if department_id is not None:
            report.department_id = department_id
        report.updated_at = utcnow()
        db.add(StatusLog(report_id=report.id, admin_id=admin.id, from_status=previous, to_status=status))

        newly_resolved = status == "resolved" and previous != "resolved"
        push_tokens = _award_points(db, report.id) if newly_resolved else []
        db.commit()
    except IntegrityError:
        # reopening while a newer open report holds the same key
        db.rollback()
        raise ConflictError("Another open report exists for this problem and location")
    except Exception:
        db.rollback()
        raise

    logger.info("Admin %d moved report %d from %s to %s", admin.id, report.id, previous, status)
    return UpdateResult(report, newly_resolved, push_tokens)
