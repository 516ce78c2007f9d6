# Overview: Service-layer audit trail for ERP-facing operations; best-effort activity logging and queries.

"""
Activity Auditor

Every ERP-facing operation attempt is appended to sap_activity_logs, whether
it succeeded or not. Business keys (PO, line, delivery note, material
document, plant) are lifted out of the request and response so the trail can
be searched without opening the JSON payloads.

BEST-EFFORT: a failure to write the log entry is rolled back and logged, and
never changes the outcome of the operation being audited.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import ErpActivityLog, User
from .erp_response_interpreter import MATERIAL_DOC_FIELDS, pick_field

ACTION_BY_ACTIVITY = {
    "get_po": "view",
    "get_po_list": "view",
    "create_gr": "create",
    "get_gr_history": "view",
    "get_gr_history_by_item": "view",
    "get_gr_dropdown_values": "view",
    "get_gr_summary": "view",
    "cancel_gr": "delete",
    "update_gr": "update",
}

UNKNOWN_ACTION = "unknown"


def action_for(activity_type: str) -> str:
    return ACTION_BY_ACTIVITY.get(activity_type, UNKNOWN_ACTION)


def _first_item(request_data: dict) -> dict:
    items = request_data.get("items")
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def extract_business_keys(request_data: Any, response_data: Any = None) -> dict:
    """
    Pull the searchable keys out of a request / response pair.

    The first line item stands in for batch requests. Both the current and
    the legacy field names are accepted on the request side.
    """
    request_data = request_data if isinstance(request_data, dict) else {}
    first = _first_item(request_data)

    def first_of(*values):
        for value in values:
            if value not in (None, ""):
                return str(value)
        return None

    return {
        "po_no": first_of(request_data.get("po_no"), first.get("po_no")),
        "line_no": first_of(
            request_data.get("line_no"), first.get("line_no"), first.get("item_po")
        ),
        "delivery_note": first_of(request_data.get("delivery_note"), request_data.get("dn_no")),
        "material_doc_no": first_of(pick_field(response_data, MATERIAL_DOC_FIELDS)),
        "plant": first_of(request_data.get("plant"), first.get("plant")),
    }


def record_activity(
    activity_type: str,
    *,
    actor: User | None,
    request_data: Any = None,
    success: bool,
    response_data: Any = None,
    status_code: int | None = None,
    error_message: str | None = None,
    response_time_ms: int | None = None,
    erp_endpoint: str | None = None,
    ip_address: str | None = None,
) -> ErpActivityLog | None:
    """
    Append one activity entry.

    Returns the entry, or None when the write failed (the failure is logged).
    """
    try:
        keys = extract_business_keys(request_data, response_data)
        entry = ErpActivityLog(
            activity_type=activity_type,
            action=action_for(activity_type),
            user_id=actor.user_id if actor else None,
            user_internal_id=actor.id if actor else None,
            user_email=actor.email if actor else None,
            first_name=actor.first_name if actor else None,
            last_name=actor.last_name if actor else None,
            full_name=actor.display_name if actor else None,
            role=actor.role if actor else None,
            department=actor.department if actor else None,
            ip_address=ip_address,
            request_payload=request_data,
            response_data=response_data,
            success=bool(success),
            status_code=status_code,
            error_message=error_message,
            response_time_ms=response_time_ms,
            erp_endpoint=erp_endpoint,
            **keys,
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to write ERP activity log (%s)", activity_type)
        return None


def list_activity(
    *,
    activity_type: str | None = None,
    user_id: str | None = None,
    po_no: str | None = None,
    success: bool | None = None,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[ErpActivityLog], int]:
    """Filtered audit trail, newest first. Returns (entries, total)."""
    query = db.session.query(ErpActivityLog)

    if activity_type:
        query = query.filter(ErpActivityLog.activity_type == activity_type)
    if user_id:
        query = query.filter(ErpActivityLog.user_id == user_id)
    if po_no:
        query = query.filter(ErpActivityLog.po_no == po_no)
    if success is not None:
        query = query.filter(ErpActivityLog.success.is_(success))
    if from_dt:
        query = query.filter(ErpActivityLog.created_at >= from_dt)
    if to_dt:
        query = query.filter(ErpActivityLog.created_at <= to_dt)

    total = query.count()
    entries = query.order_by(
        ErpActivityLog.created_at.desc(), ErpActivityLog.id.desc()
    ).offset(offset).limit(limit).all()
    return entries, total
