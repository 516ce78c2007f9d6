"""
Goods-Receipt posting tests through the HTTP API.

Verifies the posting workflow end to end against a stubbed ERP:
- N line items -> N pending rows before the ERP call, N finalized after, same state
- Unknown / inactive tapped cards -> 403, zero rows
- Session without its own card -> 400, zero rows
- ERP transport failure, embedded business failure and success handling
- Delegated postings keep both RFIDs
- Network faults and timeouts never leave rows "Processing..."
- A ledger write failure still answers 500 and is audited
- Every outcome is audited
"""

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from app.extensions import db
from app.models import ErpActivityLog, GoodsReceipt
from app.models.receipts import PENDING_MESSAGE
from app.services.receipt_ledger import ReceiptSubmission
from conftest import auth_headers, gr_payload, headers_for

GR_URL = "/api/sap/good-receipts"


def all_rows() -> list[GoodsReceipt]:
    return db.session.query(GoodsReceipt).order_by(GoodsReceipt.id).all()


def audit_entries(activity_type: str = "create_gr") -> list[ErpActivityLog]:
    return db.session.query(ErpActivityLog).filter_by(activity_type=activity_type).all()


# =============================================================================
# AUTHENTICATION & IDENTITY
# =============================================================================


class TestIdentity:

    def test_requires_session(self, client, erp):
        resp = client.post(GR_URL, json=gr_payload())

        assert resp.status_code == 401
        assert erp.requests == []

    def test_unknown_token(self, client, erp, operator):
        resp = client.post(GR_URL, json=gr_payload(), headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401

    def test_unknown_card(self, client, erp, operator_headers):
        resp = client.post(GR_URL, json=gr_payload(credential="9999999999"), headers=operator_headers)

        assert resp.status_code == 403
        assert resp.json["success"] is False
        assert resp.json["message"] == "RFID card not registered in system"
        assert resp.json["error_type"] == "AUTHORIZATION_ERROR"
        assert all_rows() == []
        assert erp.requests == []

    def test_inactive_card(self, client, erp, operator_headers, inactive_user):
        resp = client.post(GR_URL, json=gr_payload(credential="0055555555"), headers=operator_headers)

        assert resp.status_code == 403
        assert resp.json["message"] == "User account is not active"
        assert all_rows() == []
        assert erp.requests == []

    def test_session_account_without_card(self, client, erp, operator, no_card_user):
        resp = client.post(GR_URL, json=gr_payload(), headers=headers_for(no_card_user))

        assert resp.status_code == 400
        assert "does not have an RFID registered" in resp.json["message"]
        assert all_rows() == []

    def test_identity_rejections_are_audited(self, client, erp, operator_headers):
        client.post(GR_URL, json=gr_payload(credential="9999999999"), headers=operator_headers)

        entries = audit_entries()
        assert len(entries) == 1
        assert entries[0].success is False
        assert entries[0].status_code == 403


# =============================================================================
# VALIDATION
# =============================================================================


class TestValidation:

    def test_structural_errors(self, client, erp, operator_headers):
        payload = gr_payload(credential="123", items=[{"po_no": "1", "line_no": "10", "qty": 0, "plant": "1000"}])

        resp = client.post(GR_URL, json=payload, headers=operator_headers)

        assert resp.status_code == 422
        assert resp.json["success"] is False
        assert "credential" in resp.json["errors"]
        assert "items.0.qty" in resp.json["errors"]
        assert all_rows() == []
        assert erp.requests == []

    def test_oversize_fields_rejected_before_any_write(self, client, erp, operator_headers):
        payload = gr_payload(items=[{"po_no": "4500001234", "line_no": "10", "qty": 1,
                                     "plant": "PLANT-1000-NORTH-WING"}])

        resp = client.post(GR_URL, json=payload, headers=operator_headers)

        assert resp.status_code == 422
        assert "items.0.plant" in resp.json["errors"]
        assert all_rows() == []
        assert erp.requests == []

    def test_missing_body(self, client, erp, operator_headers):
        resp = client.post(GR_URL, data="not json", headers=operator_headers)
        assert resp.status_code == 422


# =============================================================================
# ERP OUTCOMES
# =============================================================================


class TestSuccess:

    def test_all_rows_succeed_with_material_document(self, client, erp, operator_headers):
        erp.reply(200, {"mat_doc": "5000012345", "doc_year": "2025"})

        resp = client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        assert resp.status_code == 200
        assert resp.json["success"] is True
        assert resp.json["data"] == {"mat_doc": "5000012345", "doc_year": "2025"}
        assert resp.json["meta"]["items_processed"] == 2

        rows = all_rows()
        assert len(rows) == 2
        assert all(r.success for r in rows)
        assert {r.material_doc_no for r in rows} == {"5000012345"}
        assert {r.submission_id for r in rows} == {resp.json["meta"]["submission_id"]}

    def test_outbound_request(self, client, erp, operator_headers):
        client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        request = erp.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://erp.test/zapi/ZAPI/OJI_GR_ENTRY?sap-client=300"
        assert request.headers["sap-client"] == "300"
        assert request.headers["Authorization"].startswith("Basic ")

        body = erp.last_json
        assert body["doc_date"] == "2025-03-14"
        assert body["post_date"] == "2025-03-15"
        assert [line["line_no"] for line in body["lines"]] == ["00010", "00020"]
        assert body["lines"][1]["sloc"] == ""
        assert body["lines"][1]["manufacture_date"] == "2025-03-14"

    def test_rows_are_pending_while_erp_is_called(self, client, erp, operator_headers):
        seen = {}

        def handler(request):
            rows = all_rows()
            seen["count"] = len(rows)
            seen["pending"] = all(r.is_pending for r in rows)
            return httpx.Response(200, json={"mat_doc": "5000012345"})

        erp.handler = handler
        client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        assert seen == {"count": 2, "pending": True}
        assert not any(r.is_pending for r in all_rows())

    def test_success_is_audited(self, client, erp, operator_headers, operator):
        client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        entries = audit_entries()
        assert len(entries) == 1
        entry = entries[0]
        assert entry.success is True
        assert entry.action == "create"
        assert entry.material_doc_no == "5000012345"
        assert entry.po_no == "4500001234"
        assert entry.delivery_note == "DN-2025-0001"
        assert entry.user_id == operator.user_id
        assert entry.erp_endpoint.startswith("https://erp.test/")


class TestBusinessFailure:

    def test_type_e_on_http_200_is_not_success(self, client, erp, operator_headers):
        erp.reply(200, {"type": "E", "message": "Plant 1000 not found"})

        resp = client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        assert resp.status_code == 422
        assert resp.json["success"] is False
        assert resp.json["error_type"] == "SAP_PROCESSING_ERROR"
        assert resp.json["message"] == "Plant 1000 not found"

        rows = all_rows()
        assert len(rows) == 2
        assert not any(r.success for r in rows)
        assert {r.error_message for r in rows} == {"Plant 1000 not found"}

    def test_status_error_on_http_200(self, client, erp, operator_headers):
        erp.reply(200, {"STATUS": "ERROR", "RETURN": [{"MESSAGE": "PO line closed"}]})

        resp = client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        assert resp.status_code == 422
        assert resp.json["message"] == "PO line closed"


class TestTransportFailure:

    def test_posting_period_closed(self, client, erp, operator_headers):
        erp.reply(500, {"error": {"message": {"value": "Posting period 03/2025 is closed"}}})

        resp = client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        assert resp.status_code == 500
        assert resp.json["error_type"] == "SAP_SERVER_ERROR"
        assert "Posting period is closed" in resp.json["message"]
        assert resp.json["error_details"]["http_status"] == 500

        rows = all_rows()
        assert all(r.is_failed for r in rows)
        assert {r.error_message for r in rows} == {resp.json["message"]}

    def test_erp_status_is_passed_through(self, client, erp, operator_headers):
        erp.reply(401, {"message": "Logon failed"})

        resp = client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        assert resp.status_code == 401
        assert resp.json["error_type"] == "AUTHENTICATION_ERROR"
        assert resp.json["message"] == "Logon failed"

    def test_non_json_error_body(self, client, erp, operator_headers):
        erp.reply(503, text="<html>Service Unavailable</html>")

        resp = client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        assert resp.status_code == 503
        assert resp.json["error_type"] == "SERVICE_UNAVAILABLE"
        assert resp.json["message"] == "ERP error (HTTP 503)"

    def test_timeout_is_transport_failure(self, client, erp, operator_headers):
        erp.fail_with(httpx.ReadTimeout, "timed out")

        resp = client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        assert resp.status_code == 504
        assert resp.json["error_type"] == "SERVICE_UNAVAILABLE"
        rows = all_rows()
        assert len(rows) == 2
        assert all(r.is_failed for r in rows)
        assert not any(r.error_message == PENDING_MESSAGE for r in rows)


class TestNetworkFault:

    def test_rows_failed_with_exception_message(self, client, erp, operator_headers):
        erp.fail_with(httpx.ConnectError, "Connection refused")

        resp = client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        assert resp.status_code == 500
        assert resp.json["success"] is False
        assert resp.json["error_details"] == "Connection refused"

        rows = all_rows()
        assert len(rows) == 2
        assert all(r.success is False for r in rows)
        assert {r.error_message for r in rows} == {"Connection refused"}

    def test_fault_is_audited(self, client, erp, operator_headers):
        erp.fail_with(httpx.ConnectError, "Connection refused")

        client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        entries = audit_entries()
        assert len(entries) == 1
        assert entries[0].status_code == 500
        assert entries[0].error_message == "Connection refused"


class TestLedgerWriteFault:

    @pytest.fixture
    def broken_ledger(self, monkeypatch):
        def create_pending(*args, **kwargs):
            raise OperationalError(
                "INSERT INTO good_receipts", {}, Exception("value too long for type character varying(16)")
            )
        monkeypatch.setattr(ReceiptSubmission, "create_pending", create_pending)

    def test_structured_500(self, client, erp, operator_headers, broken_ledger):
        resp = client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        assert resp.status_code == 500
        assert resp.json["success"] is False
        assert resp.json["error_type"] == "UNKNOWN_ERROR"
        assert "value too long" in resp.json["error_details"]
        assert all_rows() == []
        assert erp.requests == []

    def test_fault_is_audited(self, client, erp, operator_headers, broken_ledger):
        client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        entries = audit_entries()
        assert len(entries) == 1
        assert entries[0].success is False
        assert entries[0].status_code == 500
        assert "value too long" in entries[0].error_message


# =============================================================================
# ROW COUNT / STATE INVARIANT
# =============================================================================


@pytest.mark.parametrize("line_count", [1, 3, 7])
@pytest.mark.parametrize(
    "status,body",
    [
        (200, {"mat_doc": "5000012345", "doc_year": "2025"}),
        (200, {"type": "E", "message": "rejected"}),
        (404, {"message": "not found"}),
    ],
)
def test_n_lines_n_rows_same_state(client, erp, operator_headers, line_count, status, body):
    erp.reply(status, body)
    items = [
        {"po_no": "4500001234", "line_no": str(10 * (i + 1)), "qty": 1, "plant": "1000"}
        for i in range(line_count)
    ]

    client.post(GR_URL, json=gr_payload(items=items), headers=operator_headers)

    rows = all_rows()
    assert len(rows) == line_count
    assert len({(r.success, r.error_message, r.material_doc_no) for r in rows}) == 1
    assert not any(r.is_pending for r in rows)


# =============================================================================
# DELEGATED POSTING
# =============================================================================


class TestDelegatedPosting:

    def test_both_rfids_persisted(self, client, erp, operator_headers, operator, supervisor):
        resp = client.post(GR_URL, json=gr_payload(credential="0099887766"), headers=operator_headers)

        assert resp.status_code == 200
        meta = resp.json["meta"]
        assert meta["logged_in_user"] == operator.user_id
        assert meta["logged_in_rfid"] == "0011223344"
        assert meta["posted_by_user"] == supervisor.user_id
        assert meta["posted_by_rfid"] == "0099887766"

        rows = all_rows()
        assert {r.logged_in_user_rfid for r in rows} == {"0011223344"}
        assert {r.posting_rfid for r in rows} == {"0099887766"}

    def test_rfids_independently_queryable(self, client, erp, operator_headers, supervisor):
        client.post(GR_URL, json=gr_payload(credential="0099887766"), headers=operator_headers)
        client.post(GR_URL, json=gr_payload(), headers=operator_headers)

        by_session = client.get("/api/sap/gr-history?logged_in_rfid=0011223344", headers=operator_headers)
        by_card = client.get("/api/sap/gr-history?posting_rfid=0099887766", headers=operator_headers)

        assert by_session.json["meta"]["total_records"] == 4
        assert by_card.json["meta"]["total_records"] == 2

    def test_audit_actor_is_card_owner(self, client, erp, operator_headers, supervisor):
        client.post(GR_URL, json=gr_payload(credential="0099887766"), headers=operator_headers)

        assert audit_entries()[0].user_id == supervisor.user_id


# =============================================================================
# PO LOOKUP
# =============================================================================


class TestPurchaseOrderLookup:

    def test_passthrough(self, client, erp, operator_headers):
        erp.reply(200, {"value": [{"po_no": "4500001234", "item_po": "00010"}]})

        resp = client.get("/api/sap/purchase-orders?po_no=4500001234", headers=operator_headers)

        assert resp.status_code == 200
        assert resp.json["data"]["value"][0]["item_po"] == "00010"
        assert erp.requests[0].method == "GET"
        assert "4500001234" in str(erp.requests[0].url)
        assert audit_entries("get_po")[0].success is True

    def test_requires_po_no(self, client, erp, operator_headers):
        resp = client.get("/api/sap/purchase-orders", headers=operator_headers)

        assert resp.status_code == 422
        assert "po_no" in resp.json["errors"]

    def test_erp_failure(self, client, erp, operator_headers):
        erp.reply(404, {"error": {"message": {"value": "PO does not exist"}}})

        resp = client.get("/api/sap/purchase-orders?po_no=1", headers=operator_headers)

        assert resp.status_code == 404
        assert resp.json["error_details"] == "PO does not exist"
        entry = audit_entries("get_po")[0]
        assert entry.success is False
        assert entry.status_code == 404
