# Overview: Service-layer operations for the user directory; create, update, password change and deactivation.

"""
User Directory Service

Accounts are managed by the IT department. Each new account gets the next
external user_id in sequence (USER_ID_PREFIX + at least 3 digits, e.g.
OJSAIT007). Accounts are never deleted; deactivation sets status to inactive
and revokes every open session.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import STATUS_ACTIVE, STATUS_INACTIVE
from ..validation import ConflictError, ModelValidationPolicy, StructuralValidationError, validate_payload
from . import auth_service, session_service
from .auth_service import PasswordValidationError

DEFAULT_USER_ID_PREFIX = "OJSAIT"

# "jabatan" is the job-title field name used by the legacy admin screens
FIELD_ALIASES = {"jabatan": "role"}

USER_POLICY = ModelValidationPolicy(
    writable_fields={"first_name", "last_name", "role", "department", "email", "id_card", "status"},
    required_on_create={"first_name", "last_name", "role", "department", "email"},
    choices={"status": {STATUS_ACTIVE, STATUS_INACTIVE}},
)


class UserNotFoundError(Exception):
    """Raised when no account has the given external user_id."""
    pass


def _normalize(payload: dict) -> dict:
    data = dict(payload or {})
    for old, new in FIELD_ALIASES.items():
        if old in data and new not in data:
            data[new] = data.pop(old)
    return data


def _check_email(errors: dict, email: str | None) -> None:
    if email is None:
        return
    local, _, domain = email.partition("@")
    if not local or "." not in domain:
        errors["email"] = "The email must be a valid email address."


def _check_unique(errors: dict, patch: dict, exclude_id: int | None = None) -> None:
    for field in ("email", "id_card"):
        value = patch.get(field)
        if not value:
            continue
        query = db.session.query(User).filter(getattr(User, field) == value)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            errors[field] = f"The {field} has already been taken."


def _validated(payload: dict, *, partial: bool, exclude_id: int | None = None) -> dict:
    data = _normalize(payload)
    errors: dict[str, str] = {}
    try:
        patch = validate_payload(model=User, payload=data, policy=USER_POLICY, partial=partial)
    except StructuralValidationError as e:
        errors.update(e.errors)
        patch = {}

    _check_email(errors, patch.get("email"))
    _check_unique(errors, patch, exclude_id)

    if errors:
        raise StructuralValidationError(errors)
    return patch


def next_user_id(prefix: str | None = None) -> str:
    """Next external id in sequence: highest numeric suffix + 1, zero-padded to 3."""
    prefix = prefix or current_app.config.get("USER_ID_PREFIX", DEFAULT_USER_ID_PREFIX)
    rows = db.session.query(User.user_id).filter(User.user_id.like(f"{prefix}%")).all()

    highest = 0
    for (user_id,) in rows:
        suffix = user_id[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))

    return f"{prefix}{highest + 1:03d}"


def get_user(user_id: str) -> User:
    user = db.session.query(User).filter_by(user_id=user_id).first()
    if not user:
        raise UserNotFoundError("User not found")
    return user


def list_users(include_inactive: bool = True) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(db.func.lower(User.status) == STATUS_ACTIVE)
    return query.order_by(User.user_id).all()


def create_user(payload: dict) -> User:
    """
    Create an account from an admin payload.

    Raises:
        StructuralValidationError: field problems (including a weak password)
    """
    patch = _validated(payload, partial=False)

    password = (payload or {}).get("password")
    try:
        password_hash = auth_service.hash_password(password)
    except PasswordValidationError as e:
        raise StructuralValidationError({"password": str(e)})

    user = User(
        user_id=next_user_id(),
        password_hash=password_hash,
        status=patch.pop("status", None) or STATUS_ACTIVE,
        **patch,
    )
    user.full_name = f"{user.first_name} {user.last_name}"

    db.session.add(user)
    db.session.commit()
    return user


def update_user(user_id: str, payload: dict) -> User:
    """
    Patch an account. Only provided fields change; full_name follows the
    first and last name.
    """
    user = get_user(user_id)
    patch = _validated(payload, partial=True, exclude_id=user.id)

    for key, value in patch.items():
        setattr(user, key, value)

    if "first_name" in patch or "last_name" in patch:
        user.full_name = f"{user.first_name} {user.last_name}"

    if "status" in patch and not user.is_active:
        session_service.revoke_all_user_sessions(user.id, reason="Account deactivated")

    db.session.commit()
    return user


def change_password(user_id: str, new_password: str) -> User:
    user = get_user(user_id)
    try:
        user.password_hash = auth_service.hash_password(new_password)
    except PasswordValidationError as e:
        raise StructuralValidationError({"new_password": str(e)})

    db.session.commit()
    return user


def deactivate_user(user_id: str) -> User:
    user = get_user(user_id)
    user.status = STATUS_INACTIVE
    db.session.commit()
    session_service.revoke_all_user_sessions(user.id, reason="Account deactivated")
    return user


def create_admin(first_name: str, last_name: str, email: str, password: str, id_card: str | None = None) -> User:
    """Seed an IT-department account (used by `flask system init`)."""
    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ConflictError(f"A user with email {email} already exists")

    return create_user({
        "first_name": first_name,
        "last_name": last_name,
        "role": "Administrator",
        "department": current_app.config.get("ADMIN_DEPARTMENT", "IT"),
        "email": email,
        "password": password,
        "id_card": id_card,
    })
