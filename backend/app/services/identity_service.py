# Overview: Service-layer identity checks for postings; resolves tapped RFID cards to accounts.

"""
Identity Verifier

A Goods-Receipt posting is authorized twice:
1. The request carries a valid session (the logged-in account)
2. An RFID card is physically tapped on the terminal

The two do not have to belong to the same person. A supervisor may be logged
in while a worker taps their own card, or the other way round. The verifier
records both credentials and never rejects a mismatch.

Only the tapped card's owner has to be an active account. The logged-in account
must have a card registered so that both sides of the posting are traceable.
"""

from dataclasses import dataclass

from ..extensions import db
from ..models import User


class IdentityError(Exception):
    """Base class for posting identity failures."""
    status_code = 403


class NoAuthenticatedSession(IdentityError):
    """Raised when the request carries no authenticated principal."""
    status_code = 401


class CredentialNotFound(IdentityError):
    """Raised when no account owns the tapped card."""
    status_code = 403


class CredentialInactive(IdentityError):
    """Raised when the tapped card belongs to an account that is not active."""
    status_code = 403


class SessionMissingCredential(IdentityError):
    """Raised when the logged-in account has no RFID card registered."""
    status_code = 400


@dataclass(frozen=True)
class PostingIdentity:
    """Both sides of a posting authorization."""
    session_user: User
    tapped_user: User
    session_rfid: str
    tapped_rfid: str

    @property
    def is_delegated(self) -> bool:
        return self.session_rfid != self.tapped_rfid


def find_user_by_credential(credential: str) -> User | None:
    if not credential:
        return None
    return db.session.query(User).filter_by(id_card=credential.strip()).first()


def verify_tapped_credential(credential: str) -> User:
    """
    Resolve a tapped card to its owning account.

    Raises:
        CredentialNotFound: no account owns the card
        CredentialInactive: the owning account is not active
    """
    user = find_user_by_credential(credential)
    if not user:
        raise CredentialNotFound("RFID card not registered in system")
    if not user.is_active:
        raise CredentialInactive("User account is not active")
    return user


def require_session_credential(principal: User | None) -> str:
    """
    Return the logged-in account's own card number.

    Raises:
        NoAuthenticatedSession: principal is None
        SessionMissingCredential: the account has no card registered
    """
    if principal is None:
        raise NoAuthenticatedSession("No authenticated user found")

    credential = (principal.id_card or "").strip()
    if not credential:
        raise SessionMissingCredential(
            "Your account does not have an RFID registered. Please contact administrator."
        )
    return credential


def verify_posting_identity(principal: User | None, tapped_credential: str) -> PostingIdentity:
    """
    Run the full posting identity check.

    Order: session present, tapped card valid, session card present.
    """
    if principal is None:
        raise NoAuthenticatedSession("No authenticated user found")

    tapped_user = verify_tapped_credential(tapped_credential)
    session_rfid = require_session_credential(principal)

    return PostingIdentity(
        session_user=principal,
        tapped_user=tapped_user,
        session_rfid=session_rfid,
        tapped_rfid=tapped_credential.strip(),
    )
