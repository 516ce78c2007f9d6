# Overview: Service-layer operations for auth; password hashing and credential checks.

"""
Authentication Service

Two ways in:
- Desk login with user_id (or email) and password
- Floor login by tapping an RFID card (id_card)

Both only succeed for accounts whose status is "active".

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 6 characters required (legacy directory rule)
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
from ..extensions import db
from ..models import User
from app.time_utils import utcnow


BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 6


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """Raises PasswordValidationError if the password is too short or blank."""
    if not isinstance(password, str) or not password.strip():
        raise PasswordValidationError("Password is required")

    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    if not password or not password_hash:
        return False

    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the directory
        return False


def _touch_login(user: User) -> User:
    user.last_login_at = utcnow()
    db.session.commit()
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """
    Authenticate with user_id or email plus password.

    Returns the User if credentials are valid and the account is active.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        db.or_(User.user_id == identifier, User.email == identifier)
    ).first()

    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return _touch_login(user)


def authenticate_rfid(id_card: str) -> User | None:
    """
    Authenticate by RFID card tap.

    Returns the User owning the card if the account is active, None otherwise.
    """
    if not id_card:
        return None

    user = db.session.query(User).filter_by(id_card=id_card.strip()).first()
    if not user or not user.is_active:
        return None

    return _touch_login(user)
