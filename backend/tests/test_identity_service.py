"""
Identity verifier tests.

Verifies:
- Unknown and inactive tapped cards are rejected (403)
- A session without a principal is rejected (401)
- A session account without its own card is rejected (400)
- A card of another active account is accepted (delegated posting)
"""

import pytest

from app.services.identity_service import (
    CredentialInactive,
    CredentialNotFound,
    NoAuthenticatedSession,
    SessionMissingCredential,
    verify_posting_identity,
    verify_tapped_credential,
)


def test_tapped_card_resolves_to_owner(operator):
    assert verify_tapped_credential("0011223344").id == operator.id


def test_tapped_card_is_trimmed(operator):
    assert verify_tapped_credential("  0011223344 ").id == operator.id


def test_unknown_card(operator):
    with pytest.raises(CredentialNotFound) as exc:
        verify_tapped_credential("9999999999")

    assert exc.value.status_code == 403
    assert str(exc.value) == "RFID card not registered in system"


def test_inactive_card(inactive_user):
    with pytest.raises(CredentialInactive) as exc:
        verify_tapped_credential("0055555555")

    assert exc.value.status_code == 403
    assert str(exc.value) == "User account is not active"


def test_status_comparison_ignores_case(db_session, operator):
    operator.status = "ACTIVE"
    db_session.commit()

    assert verify_tapped_credential("0011223344").id == operator.id


def test_no_principal():
    with pytest.raises(NoAuthenticatedSession) as exc:
        verify_posting_identity(None, "0011223344")
    assert exc.value.status_code == 401


def test_session_account_without_card(no_card_user, operator):
    with pytest.raises(SessionMissingCredential) as exc:
        verify_posting_identity(no_card_user, "0011223344")

    assert exc.value.status_code == 400
    assert "does not have an RFID registered" in str(exc.value)


def test_tapped_card_checked_before_session_card(no_card_user):
    # Both checks would fail; the tapped card is reported first
    with pytest.raises(CredentialNotFound):
        verify_posting_identity(no_card_user, "9999999999")


def test_own_card(operator):
    identity = verify_posting_identity(operator, "0011223344")

    assert identity.session_user.id == operator.id
    assert identity.tapped_user.id == operator.id
    assert identity.session_rfid == identity.tapped_rfid == "0011223344"
    assert not identity.is_delegated


def test_delegated_card_is_accepted(operator, supervisor):
    identity = verify_posting_identity(operator, "0099887766")

    assert identity.session_user.id == operator.id
    assert identity.tapped_user.id == supervisor.id
    assert identity.session_rfid == "0011223344"
    assert identity.tapped_rfid == "0099887766"
    assert identity.is_delegated
