# Overview: Flask API routes for the ERP activity audit trail; read-only.

from flask import Blueprint, request, jsonify

from ..services import activity_service
from ..decorators import require_auth, require_department
from app.time_utils import parse_iso_datetime

activity_bp = Blueprint("activity", __name__, url_prefix="/api/sap")


@activity_bp.get("/activity-logs")
@require_auth
@require_department()
def list_activity_logs():
    """
    Query the audit trail (IT department only).

    Query params: activity_type, user_id, po_no, success, from, to (ISO-8601),
    limit (max 500), offset.
    """
    success_arg = request.args.get("success")
    success = None
    if success_arg:
        success = success_arg.strip().lower() in {"1", "true", "yes"}

    try:
        from_dt = parse_iso_datetime(request.args.get("from"))
        to_dt = parse_iso_datetime(request.args.get("to"))
    except ValueError:
        return jsonify({
            "success": False,
            "message": "Validation failed",
            "errors": {"from": "Dates must be ISO-8601"},
        }), 422

    limit = min(max(request.args.get("limit", 100, type=int), 1), 500)
    offset = max(request.args.get("offset", 0, type=int), 0)

    entries, total = activity_service.list_activity(
        activity_type=request.args.get("activity_type"),
        user_id=request.args.get("user_id"),
        po_no=request.args.get("po_no"),
        success=success,
        from_dt=from_dt,
        to_dt=to_dt,
        limit=limit,
        offset=offset,
    )

    return jsonify({
        "success": True,
        "data": [e.to_dict() for e in entries],
        "meta": {"total_records": total, "limit": limit, "offset": offset},
    })
