from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session
from pydantic import BaseModel
from auth import decode_token, get_current_admin
from config import RESOLUTION_POINTS
from database import SessionLocal, get_db
from errors import ValidationError
from models import Admin, Department, MergedReport, RawReport, REPORT_STATUSES, Ward, merged_report_dict
from notify import build_messages, send_push
from realtime import channels
from report_updates import AdminPrincipal, get_report_in_district, update_report

router = APIRouter(prefix="/api/admin", tags=["admin"])


class ReportUpdate(BaseModel):
    # checked in update_report, after the district check
    status:        Optional[str] = None
    department_id: Optional[int] = None


def _department_name(db: Session, department_id: int | None) -> str | None:
    if department_id is None:
        return None
    dept = db.get(Department, department_id)
    return dept.name if dept else None


# ── District queue ────────────────────────────────────────────────────────────
@router.get("/reports")
def list_reports(
    status: Optional[str] = None,
    admin: AdminPrincipal = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    q = (
        db.query(MergedReport, Department.name)
        .outerjoin(Department, Department.id == MergedReport.department_id)
        .filter(MergedReport.district == admin.district_name)
    )
    if status:
        if status not in REPORT_STATUSES:
            raise ValidationError(f"Invalid status '{status}'")
        q = q.filter(MergedReport.status == status)
    rows = q.order_by(MergedReport.created_at.desc(), MergedReport.id.desc()).all()

    centroids = {
        w.ward_no: (w.latitude, w.longitude)
        for w in db.query(Ward).filter(Ward.district_id == admin.district_id)
    }

    # latest submission's photo stands for the whole merged report
    images: dict[int, str] = {}
    ids = [r.id for r, _ in rows]
    if ids:
        for merged_id, url in (
            db.query(RawReport.merged_report_id, RawReport.image_url)
            .filter(RawReport.merged_report_id.in_(ids))
            .order_by(RawReport.id.asc())
        ):
            if url:
                images[merged_id] = url

    out = []
    for r, dept in rows:
        item = merged_report_dict(r, dept)
        lat, lng = centroids.get(r.ward, (None, None))
        item["latitude"]  = lat
        item["longitude"] = lng
        item["image_url"] = images.get(r.id)
        out.append(item)
    return out


@router.get("/reports/{report_id}/submissions")
def list_submissions(
    report_id: int,
    admin: AdminPrincipal = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    get_report_in_district(db, admin, report_id)
    rows = (
        db.query(RawReport)
        .filter(RawReport.merged_report_id == report_id)
        .order_by(RawReport.created_at.asc(), RawReport.id.asc())
        .all()
    )
    return [
        {
            "id":          r.id,
            "citizen_id":  r.citizen_id,
            "description": r.description,
            "image_url":   r.image_url,
            "created_at":  r.created_at.isoformat(),
        }
        for r in rows
    ]


# ── Status / department change ────────────────────────────────────────────────
@router.put("/reports/{report_id}")
def update(
    report_id: int,
    body: ReportUpdate,
    background_tasks: BackgroundTasks,
    admin: AdminPrincipal = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    result = update_report(db, admin, report_id, body.status, body.department_id)
    report = result.report
    payload = merged_report_dict(report, _department_name(db, report.department_id))

    if result.push_tokens:
        messages = build_messages(result.push_tokens, report.problem, report.ward, RESOLUTION_POINTS)
        background_tasks.add_task(send_push, messages)
    background_tasks.add_task(channels.broadcast, admin.district_id, {"type": "report_updated", "report": payload})
    return payload


# ── Live updates for the district dashboard ───────────────────────────────────
@router.websocket("/ws")
async def admin_socket(ws: WebSocket, token: str = ""):
    user = decode_token(token)
    district_id = None
    if user and user.get("role") == "admin":
        # own short session: the socket must not pin a pooled connection
        with SessionLocal() as db:
            admin = db.get(Admin, user["id"])
            if admin is not None:
                district_id = admin.district_id
    if district_id is None:
        await ws.close(code=1008)
        return

    await channels.connect(district_id, ws)
    try:
        while True:
            if await ws.receive_text() == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        channels.disconnect(district_id, ws)
