# Overview: Service-layer Goods-Receipt posting workflow; orchestrates identity, ledger, ERP call and audit.

"""
Goods-Receipt Posting

FLOW:
1. Structural validation of the submission (422 on failure)
2. Identity check: session present, tapped card valid, session card present
3. Build the ERP batch payload
4. Pre-write one pending ledger row per line (committed)
5. Call the ERP
6. Interpret the response (or the timeout)
7. Finalize every ledger row to the same terminal state
8. Audit the attempt
9. Respond

Nothing raises out of post_goods_receipt: every outcome becomes a
GoodsReceiptResult. Pending rows are always finalized before returning, and
an audit entry is attempted for every outcome.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import User
from ..validation import StructuralValidationError, validate_goods_receipt_submission
from .activity_service import record_activity
from .erp_client import ErpClient, ErpTimeoutError
from .erp_request_builder import build_goods_receipt_payload
from .erp_response_interpreter import (
    AUTHENTICATION_ERROR,
    AUTHORIZATION_ERROR,
    INVALID_REQUEST,
    UNKNOWN_ERROR,
    interpret,
    timeout_outcome,
)
from .identity_service import IdentityError, PostingIdentity, verify_posting_identity
from .receipt_ledger import ReceiptSubmission, build_context

ACTIVITY_TYPE = "create_gr"

IDENTITY_ERROR_TYPES = {
    401: AUTHENTICATION_ERROR,
    403: AUTHORIZATION_ERROR,
    400: INVALID_REQUEST,
}

INTERNAL_ERROR_MESSAGE = "An unexpected error occurred while posting the Goods Receipt"


@dataclass(frozen=True)
class GoodsReceiptResult:
    status_code: int
    body: dict
    submission_id: str | None = None


def _elapsed_ms(started: float) -> int:
    return int(round((time.monotonic() - started) * 1000))


def _meta(receipts: ReceiptSubmission, identity: PostingIdentity) -> dict:
    return {
        "items_processed": len(receipts),
        "submission_id": receipts.submission_id,
        "logged_in_user": identity.session_user.user_id,
        "logged_in_rfid": identity.session_rfid,
        "posted_by_user": identity.tapped_user.user_id,
        "posted_by_rfid": identity.tapped_rfid,
    }


def post_goods_receipt(
    principal: User | None,
    payload: Any,
    *,
    erp_client: ErpClient,
    ip_address: str | None = None,
) -> GoodsReceiptResult:
    """
    Post one Goods-Receipt submission to the ERP.

    Args:
        principal: account of the authenticated session (None if unauthenticated)
        payload: decoded JSON request body
        erp_client: configured ERP client
        ip_address: caller address for the audit trail

    Returns:
        GoodsReceiptResult with the HTTP status and JSON body for the caller
    """
    log = current_app.logger
    request_data = payload if isinstance(payload, dict) else None

    try:
        submission = validate_goods_receipt_submission(payload)
    except StructuralValidationError as e:
        record_activity(
            ACTIVITY_TYPE,
            actor=principal,
            request_data=request_data,
            success=False,
            status_code=422,
            error_message=str(e),
            response_data={"errors": e.errors},
            ip_address=ip_address,
        )
        return GoodsReceiptResult(422, {
            "success": False,
            "message": str(e),
            "errors": e.errors,
        })

    try:
        identity = verify_posting_identity(principal, submission.credential)
    except IdentityError as e:
        log.warning(
            "Goods receipt rejected by identity check: %s (session=%s)",
            e, principal.user_id if principal else None,
        )
        record_activity(
            ACTIVITY_TYPE,
            actor=principal,
            request_data=request_data,
            success=False,
            status_code=e.status_code,
            error_message=str(e),
            ip_address=ip_address,
        )
        return GoodsReceiptResult(e.status_code, {
            "success": False,
            "message": str(e),
            "error_type": IDENTITY_ERROR_TYPES.get(e.status_code, UNKNOWN_ERROR),
        })

    if identity.is_delegated:
        log.info(
            "Delegated goods receipt: session %s (%s), card owner %s (%s)",
            identity.session_user.user_id, identity.session_rfid,
            identity.tapped_user.user_id, identity.tapped_rfid,
        )

    endpoint = erp_client.config.gr_url
    receipts: ReceiptSubmission | None = None
    started = time.monotonic()

    try:
        erp_payload = build_goods_receipt_payload(submission)
        context = build_context(submission, identity, endpoint)

        log.info(
            "Goods receipt start: submission=%s delivery_note=%s lines=%d",
            context.submission_id, submission.delivery_note, len(submission.items),
        )

        receipts = ReceiptSubmission.create_pending(submission, erp_payload["lines"], context)
        started = time.monotonic()

        try:
            response = erp_client.post_goods_receipt(erp_payload)
        except ErpTimeoutError as e:
            log.warning("ERP timeout for submission %s: %s", receipts.submission_id, e)
            outcome = timeout_outcome(e.timeout_seconds)
            elapsed_ms = _elapsed_ms(started)
        else:
            log.info(
                "ERP response for submission %s: HTTP %s in %sms",
                receipts.submission_id, response.status_code, response.elapsed_ms,
            )
            outcome = interpret(response.status_code, response.body, post_date=context.posting_date)
            elapsed_ms = response.elapsed_ms

        receipts.finalize(outcome, elapsed_ms)
    except Exception as e:
        db.session.rollback()
        submission_id = receipts.submission_id if receipts is not None else None
        log.exception("Goods receipt submission %s failed", submission_id)
        elapsed_ms = _elapsed_ms(started)
        message = str(e) or e.__class__.__name__

        if receipts is not None and not receipts.is_finalized:
            try:
                receipts.fail(message, elapsed_ms)
            except Exception:
                db.session.rollback()
                log.exception("Could not mark submission %s as failed", submission_id)

        record_activity(
            ACTIVITY_TYPE,
            actor=identity.tapped_user,
            request_data=request_data,
            success=False,
            status_code=500,
            error_message=message,
            response_time_ms=elapsed_ms,
            erp_endpoint=endpoint,
            ip_address=ip_address,
        )
        return GoodsReceiptResult(500, {
            "success": False,
            "message": INTERNAL_ERROR_MESSAGE,
            "error_type": UNKNOWN_ERROR,
            "error_details": message,
        }, submission_id)

    record_activity(
        ACTIVITY_TYPE,
        actor=identity.tapped_user,
        request_data=request_data,
        success=outcome.succeeded,
        response_data=outcome.body if outcome.succeeded else outcome.response_snapshot(),
        status_code=outcome.status_code,
        error_message=None if outcome.succeeded else outcome.message,
        response_time_ms=elapsed_ms,
        erp_endpoint=endpoint,
        ip_address=ip_address,
    )

    if outcome.succeeded:
        log.info(
            "Goods receipt end (success): submission=%s material_doc=%s",
            receipts.submission_id, outcome.material_doc_no,
        )
        return GoodsReceiptResult(200, {
            "success": True,
            "message": outcome.message,
            "data": outcome.body,
            "meta": _meta(receipts, identity),
        }, receipts.submission_id)

    log.warning(
        "Goods receipt end (failed): submission=%s kind=%s status=%s message=%s",
        receipts.submission_id, outcome.kind, outcome.status_code, outcome.message,
    )
    return GoodsReceiptResult(outcome.status_code, {
        "success": False,
        "message": outcome.message,
        "error_type": outcome.error_type,
        "error_details": {
            "http_status": outcome.erp_status,
            "erp_response": outcome.body,
        },
        "meta": _meta(receipts, identity),
    }, receipts.submission_id)


def lookup_purchase_order(
    principal: User | None,
    po_no: str,
    *,
    erp_client: ErpClient,
    ip_address: str | None = None,
) -> GoodsReceiptResult:
    """Fetch PO line details from the ERP and pass them through. Audited as get_po."""
    log = current_app.logger
    activity_type = "get_po"
    request_data = {"po_no": po_no}
    endpoint = erp_client.config.po_url(po_no)
    started = time.monotonic()

    try:
        response = erp_client.get_purchase_order(po_no)
    except ErpTimeoutError as e:
        outcome = timeout_outcome(e.timeout_seconds)
        elapsed_ms = _elapsed_ms(started)
        log.warning("ERP timeout looking up PO %s: %s", po_no, e)
        record_activity(
            activity_type,
            actor=principal,
            request_data=request_data,
            success=False,
            status_code=outcome.status_code,
            error_message=outcome.message,
            response_time_ms=elapsed_ms,
            erp_endpoint=endpoint,
            ip_address=ip_address,
        )
        return GoodsReceiptResult(outcome.status_code, {
            "success": False,
            "message": outcome.message,
            "error_type": outcome.error_type,
        })
    except Exception as e:
        log.exception("Purchase order lookup failed for %s", po_no)
        record_activity(
            activity_type,
            actor=principal,
            request_data=request_data,
            success=False,
            status_code=500,
            error_message=str(e),
            response_time_ms=_elapsed_ms(started),
            erp_endpoint=endpoint,
            ip_address=ip_address,
        )
        return GoodsReceiptResult(500, {
            "success": False,
            "message": "Error fetching PO data",
            "error_type": UNKNOWN_ERROR,
            "error_details": str(e),
        })

    if response.ok:
        items = response.body.get("value") if isinstance(response.body, dict) else None
        if not items:
            log.warning("ERP returned no lines for PO %s", po_no)

        record_activity(
            activity_type,
            actor=principal,
            request_data=request_data,
            success=True,
            response_data=response.body,
            status_code=response.status_code,
            response_time_ms=response.elapsed_ms,
            erp_endpoint=endpoint,
            ip_address=ip_address,
        )
        return GoodsReceiptResult(200, {
            "success": True,
            "message": "Purchase order retrieved successfully",
            "data": response.body,
        })

    outcome = interpret(response.status_code, response.body)
    log.warning("PO lookup for %s failed: HTTP %s %s", po_no, response.status_code, outcome.message)
    record_activity(
        activity_type,
        actor=principal,
        request_data=request_data,
        success=False,
        response_data=outcome.response_snapshot(),
        status_code=response.status_code,
        error_message=outcome.message,
        response_time_ms=response.elapsed_ms,
        erp_endpoint=endpoint,
        ip_address=ip_address,
    )
    return GoodsReceiptResult(response.status_code, {
        "success": False,
        "message": "Failed to fetch PO data",
        "error_type": outcome.error_type,
        "error_details": outcome.message,
    })
