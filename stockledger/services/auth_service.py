"""Operator accounts. The logged-in username is the actor recorded on price changes."""

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy.orm import Session

from stockledger.config import settings
from stockledger.exceptions import ValidationError
from stockledger.models.user import User
from stockledger.validators import require_text

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


def issue_token(user: User) -> str:
    payload = {
        "sub": user.id,
        "username": user.username,
        "role": user.role,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=TOKEN_ALGORITHM)


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[TOKEN_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def authenticate(db: Session, username: str, password: str) -> User | None:
    user = db.query(User).filter(User.username == username, User.active.is_(True)).first()
    if not user or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %s", username)
        return None
    return user


def get_user(db: Session, user_id: str) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def create_user(db: Session, username: str, password: str, display_name: str = "", role: str = "clerk") -> User:
    username = require_text(username, "username")
    require_text(password, "password")
    if db.query(User).filter(User.username == username).first():
        raise ValidationError(f"Username '{username}' already exists", field="username")
    user = User(
        username=username,
        display_name=display_name or username,
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def ensure_default_admin(db: Session) -> None:
    """Create an admin/admin account on an empty user table."""
    if db.query(User).count() == 0:
        create_user(db, username="admin", password="admin", display_name="Admin", role="admin")
        logger.warning("Created default admin account; change its password")
