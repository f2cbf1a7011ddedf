from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, Index, UniqueConstraint, text
from database import Base

REPORT_STATUSES = ("submitted", "in_progress", "resolved", "rejected")
OPEN_STATUSES   = ("submitted", "in_progress")
ADMIN_ROLES     = ("general", "department")

_OPEN_KEY_WHERE = text("status IN ('submitted', 'in_progress')")


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column in the schema is stored this way."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ── Reference data ────────────────────────────────────────────────────────────
class District(Base):
    __tablename__ = "districts"

    id         = Column(Integer, primary_key=True)
    name       = Column(String(128), unique=True, nullable=False)
    secret_key = Column(String(256), nullable=False)   # admin registration key


class Ward(Base):
    __tablename__ = "wards"
    __table_args__ = (UniqueConstraint("district_id", "ward_no", name="uq_ward_district"),)

    id          = Column(Integer, primary_key=True)
    district_id = Column(Integer, ForeignKey("districts.id"), nullable=False)
    ward_no     = Column(String(32), nullable=False)
    latitude    = Column(Float, nullable=False)    # centroid
    longitude   = Column(Float, nullable=False)


class Department(Base):
    __tablename__ = "departments"

    id   = Column(Integer, primary_key=True)
    name = Column(String(128), unique=True, nullable=False)


# ── Accounts ──────────────────────────────────────────────────────────────────
class Citizen(Base):
    __tablename__ = "citizens"

    id            = Column(Integer, primary_key=True)
    name          = Column(String(128), nullable=False)
    phone         = Column(String(20), unique=True, nullable=False)
    password_hash = Column(String(256), nullable=False)
    points        = Column(Integer, nullable=False, default=0)
    push_token    = Column(String(256))               # Expo push token
    created_at    = Column(DateTime, default=utcnow)


class Admin(Base):
    __tablename__ = "admins"

    id            = Column(Integer, primary_key=True)
    name          = Column(String(128), nullable=False)
    email         = Column(String(256), unique=True, nullable=False)
    password_hash = Column(String(256), nullable=False)
    role          = Column(String(16), nullable=False, default="general")   # general / department
    district_id   = Column(Integer, ForeignKey("districts.id"), nullable=False)
    created_at    = Column(DateTime, default=utcnow)


class StateAdmin(Base):
    __tablename__ = "state_admins"

    id            = Column(Integer, primary_key=True)
    name          = Column(String(128), nullable=False)
    email         = Column(String(256), unique=True, nullable=False)
    password_hash = Column(String(256), nullable=False)
    created_at    = Column(DateTime, default=utcnow)


# ── Reports ───────────────────────────────────────────────────────────────────
class MergedReport(Base):
    """
    One open record per (problem, district, ward). Every matching citizen
    submission bumps `nos` until the record is resolved or rejected.
    """
    __tablename__ = "merged_reports"
    __table_args__ = (
        Index(
            "uq_merged_reports_open_key", "problem", "district", "ward",
            unique=True,
            postgresql_where=_OPEN_KEY_WHERE,
            sqlite_where=_OPEN_KEY_WHERE,
        ),
    )

    id            = Column(Integer, primary_key=True)
    problem       = Column(String(128), nullable=False)
    district      = Column(String(128), nullable=False)
    ward          = Column(String(32), nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"))
    status        = Column(String(32), nullable=False, default="submitted")
    nos           = Column(Integer, nullable=False, default=1)
    created_at    = Column(DateTime, nullable=False, default=utcnow)
    updated_at    = Column(DateTime, nullable=False, default=utcnow)


class RawReport(Base):
    """Append-only log of citizen submissions."""
    __tablename__ = "all_reports"

    id               = Column(Integer, primary_key=True)
    citizen_id       = Column(Integer, ForeignKey("citizens.id"), nullable=False)
    merged_report_id = Column(Integer, ForeignKey("merged_reports.id"), nullable=False)
    problem          = Column(String(128), nullable=False)
    description      = Column(Text)
    image_url        = Column(String(1024))
    district         = Column(String(128), nullable=False)
    ward             = Column(String(32), nullable=False)
    created_at       = Column(DateTime, nullable=False, default=utcnow)


class StatusLog(Base):
    __tablename__ = "status_log"

    id          = Column(Integer, primary_key=True)
    report_id   = Column(Integer, ForeignKey("merged_reports.id"))
    admin_id    = Column(Integer, ForeignKey("admins.id"))
    from_status = Column(String(32))
    to_status   = Column(String(32))
    created_at  = Column(DateTime, default=utcnow)


def merged_report_dict(r: MergedReport, department_name: str | None = None) -> dict:
    return {
        "id":              r.id,
        "problem":         r.problem,
        "district":        r.district,
        "ward":            r.ward,
        "department_id":   r.department_id,
        "department_name": department_name,
        "status":          r.status,
        "nos":             r.nos,
        "created_at":      r.created_at.isoformat() if r.created_at else None,
        "updated_at":      r.updated_at.isoformat() if r.updated_at else None,
    }
