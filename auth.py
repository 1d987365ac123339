"""Authentication utilities: password hashing, JWT tokens, and FastAPI dependencies."""

import logging
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from fastapi import Depends, Request
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, ADMIN_USERNAME, ADMIN_PASSWORD
from database import get_db
from models import AdminUser

logger = logging.getLogger(__name__)


class AdminLoginRequired(Exception):
    """Raised by the admin dependency; pages redirect to /login, the API answers 401."""

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(detail)
        self.detail = detail


# ---------- Password helpers ----------

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


# ---------- JWT helpers ----------

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


# ---------- Admin account ----------

def get_admin_by_username(db: Session, username: str) -> Optional[AdminUser]:
    return db.query(AdminUser).filter(AdminUser.username == username).first()


def seed_admin(db: Session) -> AdminUser:
    """Create the configured admin account on first start."""
    admin = get_admin_by_username(db, ADMIN_USERNAME)
    if admin is None:
        admin = AdminUser(username=ADMIN_USERNAME, hashed_password=hash_password(ADMIN_PASSWORD))
        db.add(admin)
        db.commit()
        db.refresh(admin)
        logger.info("Created admin account %s", ADMIN_USERNAME)
    return admin


def authenticate_admin(db: Session, username: str, password: str) -> Optional[AdminUser]:
    admin = get_admin_by_username(db, username)
    if not admin or not verify_password(password, admin.hashed_password):
        return None
    return admin


# ---------- FastAPI dependencies ----------

def _get_token_from_request(request: Request) -> Optional[str]:
    """Extract JWT from Authorization header or cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    return request.cookies.get("access_token")


async def get_current_admin(
    request: Request,
    db: Session = Depends(get_db),
) -> AdminUser:
    token = _get_token_from_request(request)
    if not token:
        raise AdminLoginRequired()
    payload = decode_token(token)
    if payload is None or payload.get("role") != "admin":
        logger.warning("Invalid admin token for %s", request.url.path)
        raise AdminLoginRequired("Invalid token")
    admin = get_admin_by_username(db, payload.get("sub", ""))
    if admin is None:
        logger.warning("Admin not found: %s", payload.get("sub"))
        raise AdminLoginRequired("Admin not found")
    return admin


async def get_optional_admin(
    request: Request,
    db: Session = Depends(get_db),
) -> Optional[AdminUser]:
    """Same as get_current_admin but returns None instead of raising."""
    try:
        return await get_current_admin(request, db)
    except AdminLoginRequired:
        return None
