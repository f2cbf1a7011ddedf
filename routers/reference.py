from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from database import get_db
from models import Department, District

router = APIRouter(prefix="/api", tags=["reference"])


@router.get("/departments")
def list_departments(db: Session = Depends(get_db)):
    return [{"id": d.id, "name": d.name} for d in db.query(Department).order_by(Department.id).all()]


@router.get("/districts")
def list_districts(db: Session = Depends(get_db)):
    # secret_key never leaves the server
    return [{"id": d.id, "name": d.name} for d in db.query(District).order_by(District.name).all()]
