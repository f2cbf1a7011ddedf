"""
intake.py - report intake and merge-assignment
===============================================
A citizen submission is resolved to a ward, then either bumps the open
merged report for (problem, district, ward) or opens a new one. The raw
submission is always appended to all_reports. All of it commits together
or not at all.

Two concurrent first submissions for the same key race on the partial
unique index uq_merged_reports_open_key. The loser gets an IntegrityError,
rolls back and retries; on the retry it finds the winner's row and
increments it instead.
"""
import logging
from typing import NamedTuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import PLACEHOLDER_IMAGE_URL
from errors import NotFoundError, ValidationError
from geo import Location, resolve_location
from models import Department, MergedReport, OPEN_STATUSES, RawReport, utcnow

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


class SubmissionResult(NamedTuple):
    merged_report_id: int
    created: bool
    nos: int
    location: Location


def _find_department_id(db: Session, name: str) -> int:
    dept = db.query(Department).filter(Department.name == name).first()
    if dept is None:
        raise NotFoundError(f"Department '{name}' not found")
    return dept.id


def _find_open_report(db: Session, problem: str, location: Location) -> MergedReport | None:
    return (
        db.query(MergedReport)
        .filter(
            MergedReport.problem  == problem,
            MergedReport.district == location.district_name,
            MergedReport.ward     == location.ward_no,
            MergedReport.status.in_(OPEN_STATUSES),
        )
        .with_for_update()
        .first()
    )


def _merge_or_create(db: Session, problem: str, location: Location, department_id: int) -> tuple[MergedReport, bool]:
    merged = _find_open_report(db, problem, location)
    if merged is not None:
        values = {MergedReport.nos: MergedReport.nos + 1, MergedReport.updated_at: utcnow()}
        if merged.department_id is None:
            values[MergedReport.department_id] = department_id
        (
            db.query(MergedReport)
            .filter(MergedReport.id == merged.id)
            .update(values, synchronize_session=False)
        )
        db.refresh(merged)
        return merged, False

    now = utcnow()
    merged = MergedReport(
        problem       = problem,
        district      = location.district_name,
        ward          = location.ward_no,
        department_id = department_id,
        status        = "submitted",
        nos           = 1,
        created_at    = now,
        updated_at    = now,
    )
    db.add(merged)
    db.flush()   # raises IntegrityError if another open record won the race
    return merged, True


def _submit_once(
    db: Session,
    citizen_id: int,
    problem: str,
    latitude: float,
    longitude: float,
    department: str,
    description: str | None,
    image_url: str | None,
) -> SubmissionResult:
    location      = resolve_location(db, latitude, longitude)
    department_id = _find_department_id(db, department)

    merged, created = _merge_or_create(db, problem, location, department_id)

    db.add(RawReport(
        citizen_id       = citizen_id,
        merged_report_id = merged.id,
        problem          = problem,
        description      = description,
        image_url        = image_url or PLACEHOLDER_IMAGE_URL,
        district         = location.district_name,
        ward             = location.ward_no,
    ))
    db.commit()
    return SubmissionResult(merged.id, created, merged.nos, location)


def submit_report(
    db: Session,
    citizen_id: int,
    problem: str,
    latitude: float,
    longitude: float,
    department: str,
    description: str | None = None,
    image_url: str | None = None,
) -> SubmissionResult:
    """
    Register one citizen submission against its (problem, district, ward) key.

    Raises ValidationError for a blank problem or missing coordinates and
    NotFoundError when the department name is unknown; in both cases nothing
    is written.
    """
    problem = (problem or "").strip()
    if not problem:
        raise ValidationError("Problem is required.")
    if latitude is None or longitude is None:
        raise ValidationError("Latitude and longitude are required.")

    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            result = _submit_once(
                db, citizen_id, problem, latitude, longitude,
                department, description, image_url,
            )
        except IntegrityError:
            db.rollback()
            if attempt == MAX_ATTEMPTS:
                raise
            logger.info("Open-key conflict on %r, retrying (attempt %d)", problem, attempt)
            continue
        except Exception:
            db.rollback()
            raise

        logger.info(
            "%s merged report %d for %s / %s / ward %s (nos=%d)",
            "Created" if result.created else "Merged into",
            result.merged_report_id, problem,
            result.location.district_name, result.location.ward_no, result.nos,
        )
        return result
