from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"


class User(db.Model):
    """
    Warehouse staff account (the ERP-side user directory).

    Each account carries an external user_id (e.g. OJSAIT001), a password for
    desk login and an optional RFID card number (id_card) that is tapped on the
    floor terminals to authorize postings.

    Only accounts whose status is "active" may log in or authorize a posting.
    Accounts are never deleted; deactivation flips status to "inactive".
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_department", "department"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # External identifier shown to operators
    user_id = db.Column(db.String(32), nullable=False, unique=True, index=True)

    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    full_name = db.Column(db.String(101), nullable=True)

    # Job title ("jabatan" in the legacy directory)
    role = db.Column(db.String(100), nullable=True)
    department = db.Column(db.String(100), nullable=True)

    email = db.Column(db.String(100), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)

    # RFID card number tapped on the floor terminals
    id_card = db.Column(db.String(50), nullable=True, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return (self.status or "").strip().lower() == STATUS_ACTIVE

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User user_id={self.user_id!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.display_name,
            "role": self.role,
            "department": self.department,
            "email": self.email,
            "status": self.status,
            "id_card": self.id_card,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Bearer session tokens.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - 24-hour absolute timeout
    - 2-hour idle timeout
    - Revocable on logout, logout-all or account deactivation
    - login_method records whether the session was opened by password or RFID tap
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    login_method = db.Column(db.String(16), nullable=False, default="password")

    # Session metadata
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # Revocation support
    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    # Client information
    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", backref=db.backref("session_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "login_method": self.login_method,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
        }
