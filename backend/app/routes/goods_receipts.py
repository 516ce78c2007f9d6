# Overview: Flask API routes for PO lookup and Goods-Receipt posting and history; parses input and returns JSON responses.

# backend/app/routes/goods_receipts.py
"""
Goods-Receipt routes

- GET  /purchase-orders?po_no=      PO lookup passthrough to the ERP
- POST /good-receipts               post a Goods-Receipt batch (RFID tap required)
- GET  /gr-history                  filtered ledger listing
- GET  /gr-history-by-item          successful postings for one PO line
- GET  /gr-dropdown-values          distinct values for form dropdowns
- GET  /gr-summary                  per-PO statistics

All routes require a session. Every call is recorded in the ERP activity log.
"""

import time

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import goods_receipt_service, receipt_ledger
from ..services.activity_service import record_activity
from ..services.erp_client import get_erp_client
from app.time_utils import parse_erp_date

goods_receipts_bp = Blueprint("goods_receipts", __name__, url_prefix="/api/sap")

DEFAULT_LIMIT = 100
MAX_LIMIT = 500


def _required_args(*names: str) -> dict:
    return {
        name: f"The {name} field is required."
        for name in names
        if not (request.args.get(name) or "").strip()
    }


def _validation_failed(errors: dict):
    return jsonify({"success": False, "message": "Validation failed", "errors": errors}), 422


def _line_no_arg() -> str | None:
    # item_po is the field name used by the legacy terminals
    value = request.args.get("line_no") or request.args.get("item_po")
    return value.strip() if value else None


def _bool_arg(name: str) -> bool | None:
    value = request.args.get(name)
    if value is None or value == "":
        return None
    return value.strip().lower() in {"1", "true", "yes"}


def _date_args(*names: str) -> tuple[dict, dict]:
    """Parse optional date query params. Returns (dates, errors); unparseable values are errors."""
    dates, errors = {}, {}
    for name in names:
        raw = (request.args.get(name) or "").strip()
        parsed = parse_erp_date(raw) if raw else None
        if raw and parsed is None:
            errors[name] = f"The {name} is not a valid date (YYYY-MM-DD)."
        dates[name] = parsed
    return dates, errors


def _audit_read(activity_type: str, request_data: dict, started: float, *, success: bool = True,
                status_code: int = 200, error_message: str | None = None) -> None:
    record_activity(
        activity_type,
        actor=g.current_user,
        request_data=request_data,
        success=success,
        status_code=status_code,
        error_message=error_message,
        response_time_ms=int(round((time.monotonic() - started) * 1000)),
        ip_address=request.remote_addr,
    )


@goods_receipts_bp.get("/purchase-orders")
@require_auth
def get_purchase_order_route():
    errors = _required_args("po_no")
    if errors:
        return _validation_failed(errors)

    result = goods_receipt_service.lookup_purchase_order(
        g.current_user,
        request.args["po_no"].strip(),
        erp_client=get_erp_client(),
        ip_address=request.remote_addr,
    )
    return jsonify(result.body), result.status_code


@goods_receipts_bp.post("/good-receipts")
@require_auth
def create_good_receipt_route():
    """
    Post a Goods-Receipt batch.

    Request body:
    - credential (or id_card): tapped RFID card, may differ from the session's own card
    - delivery_note (or dn_no), doc_date, post_date (DD-MM-YYYY)
    - items: [{po_no, line_no (or item_po), qty, plant, sloc?, batch_no?, manufacture_date? (or dom)}]

    Status mirrors the outcome: 200, 400/401/403 (identity), 422 (validation or
    ERP business rejection), the ERP's own status on transport failure, 500.
    """
    try:
        result = goods_receipt_service.post_goods_receipt(
            g.current_user,
            request.get_json(silent=True),
            erp_client=get_erp_client(),
            ip_address=request.remote_addr,
        )
        return jsonify(result.body), result.status_code

    except Exception:
        current_app.logger.exception("Failed to create goods receipt")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@goods_receipts_bp.get("/gr-history")
@require_auth
def get_gr_history_route():
    """
    Filtered ledger listing, newest first.

    Query params: po_no, line_no, delivery_note, plant, success, logged_in_rfid,
    posting_rfid, from_date, to_date, limit (max 500), offset.
    """
    started = time.monotonic()
    dates, errors = _date_args("from_date", "to_date")
    if errors:
        return _validation_failed(errors)

    filters = {
        "po_no": request.args.get("po_no"),
        "line_no": _line_no_arg(),
        "delivery_note": request.args.get("delivery_note") or request.args.get("dn_no"),
        "plant": request.args.get("plant"),
        "success": _bool_arg("success"),
        "logged_in_rfid": request.args.get("logged_in_rfid"),
        "posting_rfid": request.args.get("posting_rfid"),
        **dates,
    }
    limit = min(max(request.args.get("limit", DEFAULT_LIMIT, type=int), 1), MAX_LIMIT)
    offset = max(request.args.get("offset", 0, type=int), 0)

    try:
        rows, total = receipt_ledger.list_history(limit=limit, offset=offset, **filters)
    except Exception as e:
        current_app.logger.exception("Failed to fetch GR history")
        _audit_read("get_gr_history", dict(request.args), started,
                    success=False, status_code=500, error_message=str(e))
        return jsonify({"success": False, "message": "Error fetching GR history"}), 500

    _audit_read("get_gr_history", dict(request.args), started)
    return jsonify({
        "success": True,
        "message": "GR history retrieved successfully",
        "data": [r.to_dict() for r in rows],
        "meta": {"total_records": total, "limit": limit, "offset": offset},
    })


@goods_receipts_bp.get("/gr-history-by-item")
@require_auth
def get_gr_history_by_item_route():
    started = time.monotonic()
    po_no = (request.args.get("po_no") or "").strip()
    line_no = _line_no_arg()

    errors = _required_args("po_no")
    if not line_no:
        errors["line_no"] = "The line_no field is required."
    if errors:
        return _validation_failed(errors)

    request_data = {"po_no": po_no, "line_no": line_no}
    try:
        records = receipt_ledger.history_by_item(po_no, line_no)
        data = []
        for record in records:
            row = record.to_dict()
            row["posting_details"] = receipt_ledger.posting_details(record)
            data.append(row)
    except Exception as e:
        current_app.logger.exception("Failed to fetch GR history for %s/%s", po_no, line_no)
        _audit_read("get_gr_history_by_item", request_data, started,
                    success=False, status_code=500, error_message=str(e))
        return jsonify({"success": False, "message": "Error fetching GR history"}), 500

    _audit_read("get_gr_history_by_item", request_data, started)
    return jsonify({
        "success": True,
        "message": "GR history retrieved successfully",
        "data": data,
        "meta": {
            "po_no": po_no,
            "line_no": line_no,
            "total_records": len(data),
            "total_qty_received": float(receipt_ledger.total_received_qty(po_no, line_no)),
        }
    })


@goods_receipts_bp.get("/gr-dropdown-values")
@require_auth
def get_gr_dropdown_values_route():
    started = time.monotonic()
    errors = _required_args("po_no")
    if errors:
        return _validation_failed(errors)

    po_no = request.args["po_no"].strip()
    line_no = _line_no_arg()
    request_data = {"po_no": po_no, "line_no": line_no}

    try:
        values, count = receipt_ledger.dropdown_values(po_no, line_no)
    except Exception as e:
        current_app.logger.exception("Failed to fetch dropdown values for %s", po_no)
        _audit_read("get_gr_dropdown_values", request_data, started,
                    success=False, status_code=500, error_message=str(e))
        return jsonify({"success": False, "message": "Error fetching dropdown values"}), 500

    _audit_read("get_gr_dropdown_values", request_data, started)
    return jsonify({
        "success": True,
        "message": "Dropdown values retrieved successfully",
        "data": values,
        "meta": {"po_no": po_no, "line_no": line_no, "total_records": count},
    })


@goods_receipts_bp.get("/gr-summary")
@require_auth
def get_gr_summary_route():
    started = time.monotonic()
    errors = _required_args("po_no")
    if errors:
        return _validation_failed(errors)

    po_no = request.args["po_no"].strip()
    try:
        summary = receipt_ledger.po_statistics(po_no)
    except Exception as e:
        current_app.logger.exception("Failed to build GR summary for %s", po_no)
        _audit_read("get_gr_summary", {"po_no": po_no}, started,
                    success=False, status_code=500, error_message=str(e))
        return jsonify({"success": False, "message": "Error fetching GR summary"}), 500

    _audit_read("get_gr_summary", {"po_no": po_no}, started)
    return jsonify({
        "success": True,
        "message": "GR summary retrieved successfully",
        "data": summary,
    })
