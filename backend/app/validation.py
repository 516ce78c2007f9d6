from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from app.time_utils import parse_display_date


# Structural limits for a Goods-Receipt submission
MIN_CREDENTIAL_LENGTH = 10
MIN_QUANTITY = Decimal("0.01")

# Column widths of the good_receipts ledger
MAX_LENGTHS = {
    "credential": 50,
    "delivery_note": 64,
    "po_no": 32,
    "line_no": 16,
    "plant": 16,
    "sloc": 16,
    "batch_no": 32,
}

# Field names used by the legacy floor terminals
SUBMISSION_ALIASES = {
    "id_card": "credential",
    "dn_no": "delivery_note",
}
ITEM_ALIASES = {
    "item_po": "line_no",
    "dom": "manufacture_date",
}


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate email)."""


class StructuralValidationError(ValueError):
    """422-level payload shape problem. Carries a field -> message mapping."""

    def __init__(self, errors: dict[str, str], message: str = "Validation failed"):
        super().__init__(message)
        self.errors = errors


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - choices: allowed values per field
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    choices: dict[str, set[str]] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Unlike a first-error check, every problem is collected so the client gets
    the whole list at once (StructuralValidationError.errors).

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise StructuralValidationError({"payload": "Invalid JSON payload"})

    errors: dict[str, str] = {}
    required = policy.required_on_create or set()
    if not partial:
        for f in sorted(required):
            if _to_text(payload.get(f)) is None:
                errors[f] = f"The {f} field is required."

    cols = _columns_by_key(model)
    choices = policy.choices or {}
    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            # Unknown keys are ignored, matching request->only() on the old API
            continue
        if k in errors:
            continue

        col = cols[k]

        if raw is None or (isinstance(raw, str) and not raw.strip()):
            if not col.nullable or k in required:
                errors[k] = f"The {k} field is required."
            else:
                patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as e:
            errors[k] = str(e)
            continue

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors[k] = f"The {k} may not be greater than {col.type.length} characters."
                continue

        if k in choices and val not in choices[k]:
            errors[k] = f"The selected {k} is invalid."
            continue

        patch[k] = val

    if errors:
        raise StructuralValidationError(errors)

    return patch


# =============================================================================
# GOODS RECEIPT SUBMISSION
# =============================================================================

@dataclass(frozen=True)
class ReceiptLineInput:
    po_no: str
    line_no: str
    qty: Decimal
    plant: str
    sloc: str | None = None
    batch_no: str | None = None
    manufacture_date: str | None = None  # DD-MM-YYYY as submitted

    def to_dict(self) -> dict:
        return {
            "po_no": self.po_no,
            "line_no": self.line_no,
            "qty": float(self.qty),
            "plant": self.plant,
            "sloc": self.sloc,
            "batch_no": self.batch_no,
            "manufacture_date": self.manufacture_date,
        }


@dataclass(frozen=True)
class GoodsReceiptSubmission:
    credential: str
    delivery_note: str
    doc_date: str  # DD-MM-YYYY
    post_date: str  # DD-MM-YYYY
    items: tuple[ReceiptLineInput, ...]

    def to_dict(self) -> dict:
        # Snapshot used in audit entries; the credential itself is kept since
        # the trail has to show which card authorized the posting.
        return {
            "credential": self.credential,
            "delivery_note": self.delivery_note,
            "doc_date": self.doc_date,
            "post_date": self.post_date,
            "items": [item.to_dict() for item in self.items],
        }


def _apply_aliases(data: dict, aliases: dict[str, str]) -> dict:
    normalized = dict(data)
    for old, new in aliases.items():
        if old in normalized and new not in normalized:
            normalized[new] = normalized.pop(old)
    return normalized


def _to_quantity(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        qty = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not qty.is_finite():
        return None
    return qty


def _check_display_date(errors: dict[str, str], key: str, value: Any, required: bool) -> str | None:
    text = _to_text(value)
    if text is None:
        if required:
            errors[key] = f"The {key} field is required."
        return None
    try:
        parse_display_date(text)
    except ValueError:
        errors[key] = f"The {key} does not match the format d-m-Y."
        return None
    return text


def _check_length(errors: dict[str, str], key: str, field: str, text: str | None) -> None:
    limit = MAX_LENGTHS[field]
    if text is not None and len(text) > limit:
        errors[key] = f"The {key} may not be greater than {limit} characters."


def _optional_text(errors: dict[str, str], key: str, value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        errors[key] = f"The {key} must be a string."
        return None
    return _to_text(value)


def validate_goods_receipt_submission(payload: Any) -> GoodsReceiptSubmission:
    """
    Structural validation of a Goods-Receipt request body.

    Checks shapes and types only; whether the card or the PO line is acceptable
    is decided later by the identity check and by the ERP.

    Raises StructuralValidationError with every problem found.
    """
    if not isinstance(payload, dict):
        raise StructuralValidationError({"payload": "Invalid JSON payload"})

    data = _apply_aliases(payload, SUBMISSION_ALIASES)
    errors: dict[str, str] = {}

    credential = data.get("credential")
    if isinstance(credential, int) and not isinstance(credential, bool):
        credential = str(credential)
    if not isinstance(credential, str) or not credential.strip():
        errors["credential"] = "The credential field is required."
    elif len(credential.strip()) < MIN_CREDENTIAL_LENGTH:
        errors["credential"] = f"The credential must be at least {MIN_CREDENTIAL_LENGTH} characters."
    else:
        _check_length(errors, "credential", "credential", credential.strip())

    delivery_note = _to_text(data.get("delivery_note"))
    if delivery_note is None or isinstance(data.get("delivery_note"), (dict, list)):
        errors["delivery_note"] = "The delivery_note field is required."
    else:
        _check_length(errors, "delivery_note", "delivery_note", delivery_note)

    doc_date = _check_display_date(errors, "doc_date", data.get("doc_date"), required=True)
    post_date = _check_display_date(errors, "post_date", data.get("post_date"), required=True)

    raw_items = data.get("items")
    lines: list[ReceiptLineInput] = []
    if not isinstance(raw_items, list) or not raw_items:
        errors["items"] = "The items field must be a list with at least 1 item."
        raw_items = []

    for index, raw_item in enumerate(raw_items):
        prefix = f"items.{index}"
        if not isinstance(raw_item, dict):
            errors[prefix] = f"The {prefix} must be an object."
            continue

        item = _apply_aliases(raw_item, ITEM_ALIASES)
        item_errors: dict[str, str] = {}

        required_text = {}
        for key in ("po_no", "line_no", "plant"):
            value = item.get(key)
            text = _to_text(value) if isinstance(value, (str, int)) and not isinstance(value, bool) else None
            if text is None:
                item_errors[f"{prefix}.{key}"] = f"The {prefix}.{key} field is required."
            else:
                _check_length(item_errors, f"{prefix}.{key}", key, text)
            required_text[key] = text

        qty = _to_quantity(item.get("qty"))
        if qty is None:
            item_errors[f"{prefix}.qty"] = f"The {prefix}.qty must be a number."
        elif qty < MIN_QUANTITY:
            item_errors[f"{prefix}.qty"] = f"The {prefix}.qty must be at least {MIN_QUANTITY}."

        sloc = _optional_text(item_errors, f"{prefix}.sloc", item.get("sloc"))
        batch_no = _optional_text(item_errors, f"{prefix}.batch_no", item.get("batch_no"))
        _check_length(item_errors, f"{prefix}.sloc", "sloc", sloc)
        _check_length(item_errors, f"{prefix}.batch_no", "batch_no", batch_no)
        manufacture_date = _check_display_date(
            item_errors, f"{prefix}.manufacture_date", item.get("manufacture_date"), required=False
        )

        if item_errors:
            errors.update(item_errors)
            continue

        lines.append(ReceiptLineInput(
            po_no=required_text["po_no"],
            line_no=required_text["line_no"],
            qty=qty,
            plant=required_text["plant"],
            sloc=sloc,
            batch_no=batch_no,
            manufacture_date=manufacture_date,
        ))

    if errors:
        raise StructuralValidationError(errors)

    return GoodsReceiptSubmission(
        credential=credential.strip(),
        delivery_note=delivery_note,
        doc_date=doc_date,
        post_date=post_date,
        items=tuple(lines),
    )
