from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from auth import get_current_citizen
from database import get_db
from errors import NotFoundError
from models import Citizen, MergedReport, RawReport

router = APIRouter(prefix="/api/citizen", tags=["citizen"])


class PushTokenUpdate(BaseModel):
    push_token: str = Field(min_length=1, max_length=256)


@router.get("/me")
def me(user: dict = Depends(get_current_citizen), db: Session = Depends(get_db)):
    c = db.get(Citizen, user["id"])
    if not c:
        raise NotFoundError("User not found")
    return {"id": c.id, "name": c.name, "phone": c.phone, "points": c.points}


# ── Own submissions, with the status of the merged report they count toward ──
@router.get("/my-reports")
def my_reports(user: dict = Depends(get_current_citizen), db: Session = Depends(get_db)):
    rows = (
        db.query(RawReport, MergedReport.status, MergedReport.nos)
        .join(MergedReport, MergedReport.id == RawReport.merged_report_id)
        .filter(RawReport.citizen_id == user["id"])
        .order_by(RawReport.created_at.desc(), RawReport.id.desc())
        .all()
    )
    return [
        {
            "id":               r.id,
            "merged_report_id": r.merged_report_id,
            "problem":          r.problem,
            "description":      r.description,
            "image_url":        r.image_url,
            "district":         r.district,
            "ward":             r.ward,
            "status":           status,
            "nos":              nos,
            "created_at":       r.created_at.isoformat(),
        }
        for r, status, nos in rows
    ]


@router.put("/push-token")
def set_push_token(
    body: PushTokenUpdate,
    user: dict = Depends(get_current_citizen),
    db: Session = Depends(get_db),
):
    c = db.get(Citizen, user["id"])
    if not c:
        raise NotFoundError("User not found")
    c.push_token = body.push_token
    db.commit()
    return {"status": "ok"}
