# Overview: Classifies ERP Goods-Receipt responses into success, business failure or transport failure.

"""
ERP Response Interpreter

The ERP signals failure in three different ways and is not consistent about
field names between endpoints, so an HTTP 200 is not proof of success.
Checks run in this order and the first match wins:

1. TRANSPORT FAILURE: HTTP status is not 2xx.
   error_type comes from the status code; the message is dug out of whichever
   error field the body carries. HTTP 500 messages are rephrased for known
   causes (closed posting period, missing authorization, ...).
2. BUSINESS FAILURE (form A): 2xx body with type == "E".
3. BUSINESS FAILURE (form B): 2xx body with status == "ERROR".
   Both business forms are reported as 422 / SAP_PROCESSING_ERROR.
4. SUCCESS: material document number and year are read from either naming
   variant; posting date falls back to the submitted one.

Every field the ERP may name differently is read through pick_field with an
ordered list of candidate keys.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from app.time_utils import parse_erp_date

KIND_SUCCEEDED = "succeeded"
KIND_TRANSPORT_FAILURE = "transport_failure"
KIND_BUSINESS_FAILURE = "business_failure"

BUSINESS_FAILURE_STATUS = 422
TIMEOUT_STATUS = 504

# Error taxonomy surfaced to callers as error_type
INVALID_REQUEST = "INVALID_REQUEST"
AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
AUTHORIZATION_ERROR = "AUTHORIZATION_ERROR"
NOT_FOUND = "NOT_FOUND"
SAP_SERVER_ERROR = "SAP_SERVER_ERROR"
SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
UNKNOWN_ERROR = "UNKNOWN_ERROR"
SAP_PROCESSING_ERROR = "SAP_PROCESSING_ERROR"

STATUS_ERROR_TYPES = {
    400: INVALID_REQUEST,
    401: AUTHENTICATION_ERROR,
    403: AUTHORIZATION_ERROR,
    404: NOT_FOUND,
    500: SAP_SERVER_ERROR,
    503: SERVICE_UNAVAILABLE,
}

# Candidate keys per logical value, tried in order
TYPE_FIELDS = ("type", "TYPE")
STATUS_FIELDS = ("status", "STATUS")
MESSAGE_FIELDS = ("message", "MESSAGE")
RETURN_LIST_FIELDS = ("RETURN", "return")
MATERIAL_DOC_FIELDS = ("mat_doc", "material_doc_no")
DOC_YEAR_FIELDS = ("doc_year", "year")
POSTING_DATE_FIELDS = ("posting_date",)

SERVER_ERROR_MESSAGE = (
    "SAP server error occurred while posting the Goods Receipt. "
    "Please try again later or contact the SAP administrator."
)


@dataclass(frozen=True)
class ErpOutcome:
    """Result of interpreting one ERP response."""
    kind: str
    status_code: int  # status returned to our caller
    message: str
    erp_status: int | None = None
    error_type: str | None = None
    body: Any = None
    material_doc_no: str | None = None
    doc_year: str | None = None
    posting_date: date | None = None

    @property
    def succeeded(self) -> bool:
        return self.kind == KIND_SUCCEEDED

    def response_snapshot(self) -> Any:
        """What gets stored as the raw ERP response on ledger rows."""
        if self.succeeded:
            return self.body
        return {
            "error_type": self.error_type,
            "http_status": self.erp_status,
            "message": self.message,
            "body": self.body,
        }


def decode_body(text: str | None) -> Any:
    """JSON-decode a response body. Non-JSON bodies come back as the raw text (or None if empty)."""
    if text is None:
        return None
    stripped = text.strip()
    if not stripped:
        return None
    try:
        return json.loads(stripped)
    except ValueError:
        return stripped


def pick_field(body: Any, candidates: Iterable[str], default: Any = None) -> Any:
    """Return the first non-empty value among candidate keys, else default."""
    if not isinstance(body, dict):
        return default
    for key in candidates:
        value = body.get(key)
        if value is not None and value != "":
            return value
    return default


def is_http_success(status: int) -> bool:
    return 200 <= status < 300


def classify_status(status: int) -> str:
    return STATUS_ERROR_TYPES.get(status, UNKNOWN_ERROR)


def _first_text(body: dict, candidates: Iterable[str]) -> str | None:
    """First candidate key holding a non-blank string, stripped."""
    for key in candidates:
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _nested_odata_message(body: dict) -> str | None:
    error = body.get("error")
    if not isinstance(error, dict):
        return None
    message = error.get("message")
    if isinstance(message, dict):
        return _first_text(message, ("value",))
    if isinstance(message, str) and message.strip():
        return message.strip()
    return None


def _return_list_message(body: dict) -> str | None:
    entries = pick_field(body, RETURN_LIST_FIELDS)
    if isinstance(entries, dict):
        entries = [entries]
    if not isinstance(entries, list):
        return None
    messages = []
    for entry in entries:
        if isinstance(entry, dict):
            text = _first_text(entry, MESSAGE_FIELDS)
        elif isinstance(entry, str):
            text = entry.strip()
        else:
            text = None
        if text:
            messages.append(text)
    return "; ".join(messages) if messages else None


def extract_error_message(body: Any, status: int | None = None) -> str:
    """
    Best-effort human-readable message from an ERP error body.

    Tries: OData error.message.value, message, MESSAGE, RETURN list entries,
    then a generic "ERP error (HTTP <code>)".
    """
    if isinstance(body, dict):
        message = _nested_odata_message(body)
        if message:
            return message

        flat = _first_text(body, MESSAGE_FIELDS)
        if flat:
            return flat

        joined = _return_list_message(body)
        if joined:
            return joined

    if status is None:
        return "ERP error"
    return f"ERP error (HTTP {status})"


def specialize_server_error(message: str) -> str:
    """Rephrase known HTTP 500 causes for the operator."""
    lowered = (message or "").lower()

    if "posting period" in lowered:
        return (
            "Posting period is closed. Please use a posting date in an open period "
            "or ask Finance to open the period."
        )
    if "authorization" in lowered:
        return "SAP user has no authorization for this posting. Please contact the SAP administrator."
    if "plant" in lowered and "material" in lowered:
        return "Material is not maintained for the selected plant. Please check the PO line and plant."
    if "database" in lowered:
        return "SAP database error occurred. Please try again in a few minutes."
    return SERVER_ERROR_MESSAGE


def _transport_failure(status: int, body: Any) -> ErpOutcome:
    message = extract_error_message(body, status)
    if status == 500:
        message = specialize_server_error(message)
    return ErpOutcome(
        kind=KIND_TRANSPORT_FAILURE,
        status_code=status,
        message=message,
        erp_status=status,
        error_type=classify_status(status),
        body=body,
    )


def _business_failure(status: int, body: Any) -> ErpOutcome:
    message = extract_error_message(body)
    if message == "ERP error":
        message = "SAP rejected the Goods Receipt"
    return ErpOutcome(
        kind=KIND_BUSINESS_FAILURE,
        status_code=BUSINESS_FAILURE_STATUS,
        message=message,
        erp_status=status,
        error_type=SAP_PROCESSING_ERROR,
        body=body,
    )


def _field_equals(body: Any, candidates: Iterable[str], expected: str) -> bool:
    value = pick_field(body, candidates)
    return isinstance(value, str) and value.strip().upper() == expected


def interpret(status: int, body: Any, *, post_date: date | None = None) -> ErpOutcome:
    """
    Classify a decoded ERP Goods-Receipt response.

    Args:
        status: HTTP status code from the ERP
        body: decoded body (see decode_body)
        post_date: posting date of the submission, used when the ERP omits one
    """
    if not is_http_success(status):
        return _transport_failure(status, body)

    if _field_equals(body, TYPE_FIELDS, "E"):
        return _business_failure(status, body)

    if _field_equals(body, STATUS_FIELDS, "ERROR"):
        return _business_failure(status, body)

    material_doc_no = pick_field(body, MATERIAL_DOC_FIELDS)
    doc_year = pick_field(body, DOC_YEAR_FIELDS)
    posting_date = parse_erp_date(pick_field(body, POSTING_DATE_FIELDS)) or post_date

    return ErpOutcome(
        kind=KIND_SUCCEEDED,
        status_code=200,
        message="Good Receipt created successfully",
        erp_status=status,
        body=body,
        material_doc_no=str(material_doc_no) if material_doc_no is not None else None,
        doc_year=str(doc_year) if doc_year is not None else None,
        posting_date=posting_date,
    )


def timeout_outcome(timeout_seconds: float) -> ErpOutcome:
    """Transport failure for an ERP call that did not answer in time."""
    return ErpOutcome(
        kind=KIND_TRANSPORT_FAILURE,
        status_code=TIMEOUT_STATUS,
        message=f"SAP did not respond within {timeout_seconds:g} seconds. Please check the GR status before retrying.",
        erp_status=None,
        error_type=SERVICE_UNAVAILABLE,
        body=None,
    )
