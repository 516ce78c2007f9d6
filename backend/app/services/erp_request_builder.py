# Overview: Builds the batch payload the ERP Goods-Receipt endpoint expects.

"""
ERP Request Builder

Turns a validated submission into the exact JSON body of the ERP batch call.

Per line:
- line_no is left-padded with zeros to 5 digits ("7" -> "00007"); longer values pass through
- missing sloc / batch_no become "" (the ERP rejects null)
- manufacture_date defaults to the document date
- every date goes from DD-MM-YYYY to YYYY-MM-DD
"""

from __future__ import annotations

from ..validation import GoodsReceiptSubmission, ReceiptLineInput
from app.time_utils import to_erp_date

LINE_NUMBER_WIDTH = 5


def pad_line_number(line_no: str) -> str:
    return str(line_no).strip().rjust(LINE_NUMBER_WIDTH, "0")


def _quantity(value) -> int | float:
    # The ERP parses qty as a JSON number; keep integers integral.
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def build_line(item: ReceiptLineInput, doc_date: str) -> dict:
    """One entry of the outbound `lines` array. doc_date is already in ERP format."""
    manufacture_date = to_erp_date(item.manufacture_date) if item.manufacture_date else doc_date
    return {
        "po_no": item.po_no,
        "line_no": pad_line_number(item.line_no),
        "qty": _quantity(item.qty),
        "plant": item.plant,
        "sloc": item.sloc or "",
        "batch_no": item.batch_no or "",
        "manufacture_date": manufacture_date,
    }


def build_goods_receipt_payload(submission: GoodsReceiptSubmission) -> dict:
    """
    Build the batch body for the ERP Goods-Receipt call.

    Returns:
        {delivery_note, doc_date, post_date, lines: [...]} with ERP-format dates
    """
    doc_date = to_erp_date(submission.doc_date)
    post_date = to_erp_date(submission.post_date)

    return {
        "delivery_note": submission.delivery_note or "",
        "doc_date": doc_date,
        "post_date": post_date,
        "lines": [build_line(item, doc_date) for item in submission.items],
    }
