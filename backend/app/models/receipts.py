from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date

# Sentinel stored while a row waits for the ERP answer (success is False meanwhile)
PENDING_MESSAGE = "Processing..."


class GoodsReceipt(db.Model):
    """
    One line item of one Goods-Receipt submission.

    LIFECYCLE:
    1. PENDING: inserted before the ERP call (success=False, error_message="Processing...")
    2. SUCCEEDED: ERP accepted the batch, material document recorded
    3. FAILED: ERP rejected the batch, the call failed, or the request faulted

    All rows with the same submission_id come from one ERP call and always reach
    the same terminal state. Rows are never deleted.

    Two RFID columns are kept side by side: logged_in_user_rfid is the card of the
    account whose session made the request, posting_rfid is the card physically
    tapped to authorize it. They differ on delegated postings.
    """
    __tablename__ = "good_receipts"
    __table_args__ = (
        db.Index("ix_good_receipts_po_line", "po_no", "line_no"),
        db.Index("ix_good_receipts_submission", "submission_id"),
        db.Index("ix_good_receipts_delivery_note", "delivery_note"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    submission_id = db.Column(db.String(32), nullable=False)

    # Shared by every row of a submission
    delivery_note = db.Column(db.String(64), nullable=False)
    doc_date = db.Column(db.Date, nullable=False)
    posting_date = db.Column(db.Date, nullable=True)

    # Line identity
    po_no = db.Column(db.String(32), nullable=False)
    line_no = db.Column(db.String(16), nullable=False)
    qty = db.Column(db.Numeric(13, 3), nullable=False)
    plant = db.Column(db.String(16), nullable=False)
    sloc = db.Column(db.String(16), nullable=True)
    batch_no = db.Column(db.String(32), nullable=True)
    manufacture_date = db.Column(db.Date, nullable=True)

    # Outcome
    success = db.Column(db.Boolean, nullable=False, default=False, index=True)
    error_message = db.Column(db.Text, nullable=True)
    material_doc_no = db.Column(db.String(32), nullable=True, index=True)
    doc_year = db.Column(db.String(8), nullable=True)
    response_time_ms = db.Column(db.Integer, nullable=True)

    # Actor snapshot (the identity that tapped the card)
    user_id = db.Column(db.String(32), nullable=True, index=True)
    user_internal_id = db.Column(db.Integer, nullable=True)
    user_email = db.Column(db.String(100), nullable=True)
    department = db.Column(db.String(100), nullable=True)

    logged_in_user_rfid = db.Column(db.String(50), nullable=True, index=True)
    posting_rfid = db.Column(db.String(50), nullable=True, index=True)

    # Raw payloads for audit / debugging
    erp_request = db.Column(db.JSON, nullable=True)
    erp_response = db.Column(db.JSON, nullable=True)
    erp_endpoint = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )

    @property
    def is_pending(self) -> bool:
        return not self.success and self.error_message == PENDING_MESSAGE

    @property
    def is_failed(self) -> bool:
        return not self.success and not self.is_pending

    @property
    def is_posted_by_different_person(self) -> bool:
        return self.logged_in_user_rfid != self.posting_rfid

    @property
    def response_time_seconds(self) -> float | None:
        if not self.response_time_ms:
            return None
        return round(self.response_time_ms / 1000, 2)

    def sap_document_info(self) -> dict | None:
        if not self.material_doc_no:
            return None
        return {
            "material_doc_no": self.material_doc_no,
            "doc_year": self.doc_year,
            "posting_date": to_iso_date(self.posting_date),
        }

    def __repr__(self) -> str:
        return f"<GoodsReceipt id={self.id} po={self.po_no}/{self.line_no} success={self.success}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "submission_id": self.submission_id,
            "delivery_note": self.delivery_note,
            "doc_date": to_iso_date(self.doc_date),
            "posting_date": to_iso_date(self.posting_date),
            "po_no": self.po_no,
            "line_no": self.line_no,
            "qty": float(self.qty) if self.qty is not None else None,
            "plant": self.plant,
            "sloc": self.sloc,
            "batch_no": self.batch_no,
            "manufacture_date": to_iso_date(self.manufacture_date),
            "success": self.success,
            "pending": self.is_pending,
            "error_message": self.error_message,
            "material_doc_no": self.material_doc_no,
            "doc_year": self.doc_year,
            "response_time_ms": self.response_time_ms,
            "response_time_seconds": self.response_time_seconds,
            "sap_document": self.sap_document_info(),
            "user_id": self.user_id,
            "user_email": self.user_email,
            "department": self.department,
            "logged_in_user_rfid": self.logged_in_user_rfid,
            "posting_rfid": self.posting_rfid,
            "erp_endpoint": self.erp_endpoint,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
