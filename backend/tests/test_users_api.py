"""
User directory administration tests.

Verifies:
- Only IT-department sessions may manage accounts (403 otherwise)
- New accounts get the next user_id in sequence
- Email and RFID card are unique
- Deactivation keeps the account and revokes its sessions
"""

from app.services import user_service
from conftest import TEST_PASSWORD, gr_payload, headers_for, make_user

USERS_URL = "/api/sap/users"


def _new_user(**overrides) -> dict:
    body = {
        "first_name": "Rina",
        "last_name": "Putri",
        "jabatan": "Checker",
        "department": "WAREHOUSE",
        "email": "rina.putri@example.com",
        "password": "gudang123",
        "id_card": "0077777777",
    }
    body.update(overrides)
    return body


class TestDepartmentGate:

    def test_non_it_session_is_rejected(self, client, operator_headers):
        resp = client.get(USERS_URL, headers=operator_headers)

        assert resp.status_code == 403
        assert resp.json["message"] == "Access denied. IT department only."

    def test_unauthenticated(self, client):
        assert client.get(USERS_URL).status_code == 401

    def test_it_session_is_allowed(self, client, admin_headers, operator):
        resp = client.get(USERS_URL, headers=admin_headers)

        assert resp.status_code == 200
        assert [u["user_id"] for u in resp.json["data"]] == ["OJSAIT001", "OJSAIT010"]


class TestCreate:

    def test_create_assigns_next_user_id(self, client, admin_headers, operator):
        resp = client.post(USERS_URL, json=_new_user(), headers=admin_headers)

        assert resp.status_code == 201
        data = resp.json["data"]
        assert data["user_id"] == "OJSAIT011"
        assert data["full_name"] == "Rina Putri"
        assert data["role"] == "Checker"
        assert data["status"] == "active"
        assert "password_hash" not in data

    def test_created_user_can_log_in(self, client, admin_headers):
        client.post(USERS_URL, json=_new_user(), headers=admin_headers)

        resp = client.post("/api/sap/login", json={"email": "rina.putri@example.com", "password": "gudang123"})
        assert resp.status_code == 200

    def test_duplicate_email_and_card(self, client, admin_headers, operator):
        resp = client.post(
            USERS_URL,
            json=_new_user(email=operator.email, id_card=operator.id_card),
            headers=admin_headers,
        )

        assert resp.status_code == 422
        assert resp.json["errors"]["email"] == "The email has already been taken."
        assert resp.json["errors"]["id_card"] == "The id_card has already been taken."

    def test_missing_fields_and_short_password(self, client, admin_headers):
        resp = client.post(USERS_URL, json={"first_name": "X", "password": "123"}, headers=admin_headers)

        assert resp.status_code == 422
        assert {"last_name", "role", "department", "email"} <= set(resp.json["errors"])

        resp = client.post(USERS_URL, json=_new_user(password="123"), headers=admin_headers)
        assert "password" in resp.json["errors"]

    def test_invalid_email(self, client, admin_headers):
        resp = client.post(USERS_URL, json=_new_user(email="not-an-email"), headers=admin_headers)
        assert "email" in resp.json["errors"]


def test_next_user_id_skips_foreign_ids(app, db_session, it_admin):
    make_user(db_session, "OJSAIT099")
    make_user(db_session, "OJSAITX01")
    make_user(db_session, "TEMP500")

    assert user_service.next_user_id() == "OJSAIT100"


def test_next_user_id_on_empty_directory():
    assert user_service.next_user_id() == "OJSAIT001"


class TestUpdate:

    def test_update_recomputes_full_name(self, client, admin_headers, operator):
        resp = client.put(f"{USERS_URL}/OJSAIT001", json={"last_name": "Pratama"}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["data"]["full_name"] == "Budi Pratama"
        assert resp.json["data"]["email"] == operator.email

    def test_update_own_email_is_not_a_duplicate(self, client, admin_headers, operator):
        resp = client.put(f"{USERS_URL}/OJSAIT001", json={"email": operator.email}, headers=admin_headers)
        assert resp.status_code == 200

    def test_unknown_user(self, client, admin_headers):
        resp = client.put(f"{USERS_URL}/OJSAIT404", json={"role": "x"}, headers=admin_headers)

        assert resp.status_code == 404
        assert resp.json["message"] == "User not found"

    def test_invalid_status(self, client, admin_headers, operator):
        resp = client.put(f"{USERS_URL}/OJSAIT001", json={"status": "suspended"}, headers=admin_headers)
        assert resp.status_code == 422


class TestPasswordAndDeactivation:

    def test_change_password(self, client, admin_headers, operator):
        resp = client.put(
            f"{USERS_URL}/OJSAIT001/change-password",
            json={"new_password": "baru12345"},
            headers=admin_headers,
        )
        assert resp.status_code == 200

        old = client.post("/api/sap/login", json={"user_id": "OJSAIT001", "password": TEST_PASSWORD})
        new = client.post("/api/sap/login", json={"user_id": "OJSAIT001", "password": "baru12345"})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_weak_new_password(self, client, admin_headers, operator):
        resp = client.put(
            f"{USERS_URL}/OJSAIT001/change-password",
            json={"new_password": "abc"},
            headers=admin_headers,
        )

        assert resp.status_code == 422
        assert "new_password" in resp.json["errors"]

    def test_deactivate_revokes_sessions(self, client, admin_headers, operator, operator_headers):
        resp = client.patch(f"{USERS_URL}/OJSAIT001/deactivate", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["data"]["status"] == "inactive"
        assert client.get("/api/sap/profile", headers=operator_headers).status_code == 401

        listed = client.get(f"{USERS_URL}?include_inactive=false", headers=admin_headers)
        assert "OJSAIT001" not in [u["user_id"] for u in listed.json["data"]]

    def test_deactivated_card_cannot_authorize_posting(self, client, erp, admin_headers, operator, supervisor):
        client.patch(f"{USERS_URL}/OJSAIT002/deactivate", headers=admin_headers)

        resp = client.post(
            "/api/sap/good-receipts",
            json=gr_payload(credential="0099887766"),
            headers=headers_for(operator),
        )
        assert resp.status_code == 403
