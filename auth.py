"""
auth.py - bearer-token authentication
======================================
Issues and verifies HS256 JWTs with PyJWT and exposes FastAPI dependencies
for each role.

Token payload:
  {"user": {"id": 1, "role": "admin", "district_id": 3, "district_name": "Ranchi"},
   "exp": ...}

Roles: citizen / admin / state_admin. Admin requests are re-checked against
the admins table, so a reassigned or deleted admin stops being authorised
for the old district as soon as the row changes.
"""

import logging
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException, Request
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from config import JWT_ALGORITHM, JWT_EXPIRE_HOURS, JWT_SECRET
from database import get_db
from errors import AccessDeniedError
from models import Admin, District
from report_updates import AdminPrincipal

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_token(user_id: int, role: str, district_id: int | None = None, district_name: str | None = None) -> str:
    payload = {
        "user": {
            "id":            user_id,
            "role":          role,
            "district_id":   district_id,
            "district_name": district_name,
        },
        "exp": datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRE_HOURS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict | None:
    """
    Verify the token and return its `user` claim.
    Returns None on any verification failure (logged at debug level).
    """
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.debug("JWT: token expired")
        return None
    except jwt.PyJWTError as e:
        logger.debug("JWT: verification error: %s", e)
        return None
    user = payload.get("user")
    if not isinstance(user, dict) or "id" not in user or "role" not in user:
        logger.debug("JWT: payload without a user claim")
        return None
    return user


# ── FastAPI dependencies ──────────────────────────────────────────────────────

async def get_current_user(request: Request) -> dict:
    """
    Any authenticated user. Missing header or invalid token is a 401.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="No token, authorization denied")
    user = decode_token(auth_header[len("Bearer "):])
    if user is None:
        raise HTTPException(status_code=401, detail="Token is not valid")
    return user


def _require_role(user: dict, role: str) -> dict:
    if user.get("role") != role:
        logger.warning("User %s with role %s refused a %s route", user.get("id"), user.get("role"), role)
        raise AccessDeniedError()
    return user


async def get_current_citizen(user: dict = Depends(get_current_user)) -> dict:
    return _require_role(user, "citizen")


async def get_current_state_admin(user: dict = Depends(get_current_user)) -> dict:
    return _require_role(user, "state_admin")


def get_current_admin(
    user: dict = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AdminPrincipal:
    _require_role(user, "admin")
    row = (
        db.query(Admin.id, District.id, District.name)
        .join(District, District.id == Admin.district_id)
        .filter(Admin.id == user["id"])
        .first()
    )
    if row is None:
        raise HTTPException(status_code=401, detail="Token is not valid")
    return AdminPrincipal(id=row[0], district_id=row[1], district_name=row[2])
