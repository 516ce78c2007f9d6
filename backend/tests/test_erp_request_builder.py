"""
ERP request builder tests.

Verifies:
- Line numbers are zero-padded to 5 digits, longer values pass through
- Missing sloc / batch_no are sent as "" (never null)
- manufacture_date falls back to the document date
- Dates go out as YYYY-MM-DD
"""

from decimal import Decimal

import pytest

from app.services.erp_request_builder import (
    build_goods_receipt_payload,
    build_line,
    pad_line_number,
)
from app.validation import GoodsReceiptSubmission, ReceiptLineInput


@pytest.mark.parametrize(
    "line_no,expected",
    [
        ("7", "00007"),
        ("10", "00010"),
        ("12345", "12345"),
        ("1234567", "1234567"),
        (" 20 ", "00020"),
    ],
)
def test_pad_line_number(line_no, expected):
    assert pad_line_number(line_no) == expected


def _line(**overrides) -> ReceiptLineInput:
    values = dict(po_no="4500001234", line_no="10", qty=Decimal("5"), plant="1000")
    values.update(overrides)
    return ReceiptLineInput(**values)


def test_build_line_defaults_empty_fields_to_empty_string():
    line = build_line(_line(), "2025-03-14")

    assert line["sloc"] == ""
    assert line["batch_no"] == ""


def test_build_line_manufacture_date_defaults_to_doc_date():
    line = build_line(_line(), "2025-03-14")
    assert line["manufacture_date"] == "2025-03-14"


def test_build_line_converts_manufacture_date():
    line = build_line(_line(manufacture_date="01-02-2025"), "2025-03-14")
    assert line["manufacture_date"] == "2025-02-01"


def test_build_line_keeps_integral_quantities_integral():
    assert build_line(_line(qty=Decimal("5")), "2025-03-14")["qty"] == 5
    assert isinstance(build_line(_line(qty=Decimal("5.000")), "2025-03-14")["qty"], int)
    assert build_line(_line(qty=Decimal("2.5")), "2025-03-14")["qty"] == 2.5


def test_build_goods_receipt_payload_shape():
    submission = GoodsReceiptSubmission(
        credential="0011223344",
        delivery_note="DN-1",
        doc_date="14-03-2025",
        post_date="15-03-2025",
        items=(
            _line(line_no="7", sloc="WH01", batch_no="B1"),
            _line(line_no="20", qty=Decimal("0.01")),
        ),
    )

    payload = build_goods_receipt_payload(submission)

    assert payload["delivery_note"] == "DN-1"
    assert payload["doc_date"] == "2025-03-14"
    assert payload["post_date"] == "2025-03-15"
    assert payload["lines"] == [
        {
            "po_no": "4500001234",
            "line_no": "00007",
            "qty": 5,
            "plant": "1000",
            "sloc": "WH01",
            "batch_no": "B1",
            "manufacture_date": "2025-03-14",
        },
        {
            "po_no": "4500001234",
            "line_no": "00020",
            "qty": 0.01,
            "plant": "1000",
            "sloc": "",
            "batch_no": "",
            "manufacture_date": "2025-03-14",
        },
    ]
    assert "credential" not in payload
