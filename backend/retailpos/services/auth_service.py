# Overview: Service-layer operations for auth; user accounts and password checks.

"""
Authentication Service

WHY: Every sale, return and stock movement is attributed to a user.
Passwords are hashed with bcrypt; the cost factor comes from BCRYPT_ROUNDS.

SECURITY NOTES:
- Minimum 8 characters, with upper, lower, digit and special char
- Session tokens are handled in session_service.py
- Inactive users cannot authenticate
"""

from __future__ import annotations

import logging
import re

import bcrypt
from flask import current_app

from ..errors import ConflictError, ValidationFailedError
from ..extensions import db
from ..models import User
from ..permissions import ROLES, Role
from ..time_utils import utcnow
from .concurrency import atomic

logger = logging.getLogger(__name__)


def validate_password_strength(password: str) -> None:
    """Raises ValidationFailedError if the password is too weak."""
    problems = []
    if len(password or "") < 8:
        problems.append("at least 8 characters")
    if not re.search(r"[A-Z]", password or ""):
        problems.append("an uppercase letter")
    if not re.search(r"[a-z]", password or ""):
        problems.append("a lowercase letter")
    if not re.search(r"\d", password or ""):
        problems.append("a digit")
    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password or ""):
        problems.append("a special character")

    if problems:
        raise ValidationFailedError(
            "Password must contain " + ", ".join(problems),
            details={"field": "password"},
        )


def hash_password(password: str) -> str:
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe check; a malformed stored hash never matches."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    *,
    username: str,
    password: str,
    role: str = Role.CASHIER.value,
    email: str | None = None,
    full_name: str | None = None,
) -> User:
    """
    Raises:
        ValidationFailedError: blank username, unknown role, weak password
        ConflictError: username already taken
    """
    username = (username or "").strip()
    if not username:
        raise ValidationFailedError("username is required", details={"field": "username"})
    if role not in ROLES:
        raise ValidationFailedError(
            f"role must be one of: {', '.join(ROLES)}", details={"field": "role"}
        )

    password_hash = hash_password(password)

    with atomic():
        if db.session.query(User).filter_by(username=username).first():
            raise ConflictError("Username already exists", details={"username": username})
        user = User(
            username=username,
            email=email,
            full_name=full_name,
            password_hash=password_hash,
            role=role,
        )
        db.session.add(user)

    logger.info("Created %s user %s", role, username)
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Returns the User when the credentials are valid, None otherwise.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.username == (username or "").strip(),
        User.is_active.is_(True),
    ).first()

    if user is None or not verify_password(password or "", user.password_hash):
        logger.info("Failed login for %r", username)
        return None

    with atomic():
        user.last_login_at = utcnow()
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()
