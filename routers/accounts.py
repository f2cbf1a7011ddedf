from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from auth import create_token, hash_password, verify_password
from config import STATE_ADMIN_SECRET
from database import get_db
from errors import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from models import Admin, ADMIN_ROLES, Citizen, District, StateAdmin

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ── Schemas ───────────────────────────────────────────────────────────────────
class CitizenRegister(BaseModel):
    name:     str = Field(min_length=1, max_length=128)
    phone:    str = Field(min_length=6, max_length=20)
    password: str = Field(min_length=6, max_length=72)


class AdminRegister(BaseModel):
    name:        str = Field(min_length=1, max_length=128)
    email:       str = Field(min_length=3, max_length=256)
    password:    str = Field(min_length=6, max_length=72)
    district_id: int
    secret:      str
    role:        str = "general"


class StateAdminRegister(BaseModel):
    name:      str = Field(min_length=1, max_length=128)
    email:     str = Field(min_length=3, max_length=256)
    password:  str = Field(min_length=6, max_length=72)
    secretKey: str


class LoginRequest(BaseModel):
    # the mobile and dashboard clients send identifier + userType
    identifier: Optional[str] = None
    userType:   Optional[str] = None
    phone:      Optional[str] = None
    email:      Optional[str] = None
    password:   str


# ── Registration ──────────────────────────────────────────────────────────────
@router.post("/citizen/register", status_code=201)
def register_citizen(body: CitizenRegister, db: Session = Depends(get_db)):
    if db.query(Citizen).filter(Citizen.phone == body.phone).first():
        raise ConflictError("User with this phone number already exists.")
    citizen = Citizen(name=body.name, phone=body.phone, password_hash=hash_password(body.password))
    db.add(citizen)
    db.commit()
    return {"id": citizen.id, "name": citizen.name, "phone": citizen.phone}


@router.post("/register", status_code=201)
def register_admin(body: AdminRegister, db: Session = Depends(get_db)):
    if body.role not in ADMIN_ROLES:
        raise ValidationError(f"Invalid role '{body.role}'")
    district = db.get(District, body.district_id)
    if district is None:
        raise NotFoundError("District not found")
    if body.secret != district.secret_key:
        raise AccessDeniedError("Invalid secret key")
    if db.query(Admin).filter(Admin.email == body.email).first():
        raise ConflictError("User with this email already exists.")

    admin = Admin(
        name          = body.name,
        email         = body.email,
        password_hash = hash_password(body.password),
        role          = body.role,
        district_id   = district.id,
    )
    db.add(admin)
    db.commit()
    return {"id": admin.id, "name": admin.name, "email": admin.email, "district": district.name}


@router.post("/state-admin/register", status_code=201)
def register_state_admin(body: StateAdminRegister, db: Session = Depends(get_db)):
    if not STATE_ADMIN_SECRET or body.secretKey != STATE_ADMIN_SECRET:
        raise AccessDeniedError("Invalid secret key")
    if db.query(StateAdmin).filter(StateAdmin.email == body.email).first():
        raise ConflictError("User with this email already exists.")
    sa = StateAdmin(name=body.name, email=body.email, password_hash=hash_password(body.password))
    db.add(sa)
    db.commit()
    return {"id": sa.id, "name": sa.name, "email": sa.email}


# ── Login ─────────────────────────────────────────────────────────────────────
LOGIN_TYPES = ("citizen", "admin", "state_admin")


def _invalid():
    return HTTPException(400, "Invalid credentials")


def _login_citizen(db: Session, phone: str, password: str) -> dict:
    c = db.query(Citizen).filter(Citizen.phone == phone).first()
    if not c or not verify_password(password, c.password_hash):
        raise _invalid()
    return {
        "token": create_token(c.id, "citizen"),
        "user":  {"id": c.id, "name": c.name, "role": "citizen"},
    }


def _login_admin(db: Session, email: str, password: str) -> dict | None:
    admin = db.query(Admin).filter(Admin.email == email).first()
    if admin is None:
        return None
    if not verify_password(password, admin.password_hash):
        raise _invalid()
    district = db.get(District, admin.district_id)
    return {
        "token": create_token(admin.id, "admin", district.id, district.name),
        "user": {
            "id":          admin.id,
            "name":        admin.name,
            "role":        "admin",
            "admin_role":  admin.role,
            "district_id": district.id,
            "district":    district.name,
        },
    }


def _login_state_admin(db: Session, email: str, password: str) -> dict:
    sa = db.query(StateAdmin).filter(StateAdmin.email == email).first()
    if not sa or not verify_password(password, sa.password_hash):
        raise _invalid()
    return {
        "token": create_token(sa.id, "state_admin"),
        "user":  {"id": sa.id, "name": sa.name, "role": "state_admin"},
    }


@router.post("/login")
def login(body: LoginRequest, db: Session = Depends(get_db)):
    if body.identifier:
        user_type = body.userType or ("admin" if "@" in body.identifier else "citizen")
        if user_type not in LOGIN_TYPES:
            raise ValidationError(f"Invalid userType '{user_type}'")
        if user_type == "citizen":
            return _login_citizen(db, body.identifier, body.password)
        if user_type == "admin":
            result = _login_admin(db, body.identifier, body.password)
            if result is None:
                raise _invalid()
            return result
        return _login_state_admin(db, body.identifier, body.password)

    # citizens sign in by phone, admins of either level by email
    if body.phone:
        return _login_citizen(db, body.phone, body.password)
    if not body.email:
        raise ValidationError("Phone or email is required.")
    return (
        _login_admin(db, body.email, body.password)
        or _login_state_admin(db, body.email, body.password)
    )
