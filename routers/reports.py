from typing import Optional
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address
from ai_classify import classify_complaint
from auth import get_current_citizen
from config import REPORT_RATE_LIMIT
from database import get_db
from intake import submit_report
from models import Department

router = APIRouter(prefix="/api/reports", tags=["reports"])

limiter = Limiter(key_func=get_remote_address)


# ── Schemas ───────────────────────────────────────────────────────────────────
class ReportCreate(BaseModel):
    problem:     str = Field(min_length=1, max_length=128)
    description: Optional[str] = None
    image_url:   Optional[str] = None
    latitude:    float
    longitude:   float
    department:  str


class AnalyzeRequest(BaseModel):
    description: str


# ── Submit ────────────────────────────────────────────────────────────────────
@router.post("", status_code=201)
@limiter.limit(REPORT_RATE_LIMIT)
def create_report(
    request: Request,
    body: ReportCreate,
    user: dict = Depends(get_current_citizen),
    db: Session = Depends(get_db),
):
    result = submit_report(
        db,
        citizen_id  = user["id"],
        problem     = body.problem,
        latitude    = body.latitude,
        longitude   = body.longitude,
        department  = body.department,
        description = body.description,
        image_url   = body.image_url,
    )
    return {
        "message":          "Report submitted successfully",
        "merged_report_id": result.merged_report_id,
        "district":         result.location.district_name,
        "ward":             result.location.ward_no,
        "nos":              result.nos,
    }


# ── AI categorisation ─────────────────────────────────────────────────────────
@router.post("/analyze")
def analyze_report(
    body: AnalyzeRequest,
    user: dict = Depends(get_current_citizen),
    db: Session = Depends(get_db),
):
    departments = [d[0] for d in db.query(Department.name).order_by(Department.id).all()]
    keyword, department = classify_complaint(body.description, departments)
    return {"keyword": keyword, "department": department}
