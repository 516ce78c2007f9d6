# Overview: Service-layer operations for Goods-Receipt ledger rows; pending writes, finalization and history queries.

"""
Receipt Ledger

WHY: A posting must leave a trail even if the process dies while waiting for
the ERP. Rows are therefore written (and committed) in a pending state before
the ERP call and finalized afterwards.

AGGREGATE: ReceiptSubmission owns every row of one submission. The ERP call is
indivisible, so finalize() moves all rows to the same terminal state in one
commit. There is no partial success across the lines of a submission.

LIFECYCLE (per row):
1. PENDING: success=False, error_message="Processing..."
2. SUCCEEDED: success=True, material document recorded
3. FAILED: success=False, error_message carries the reason
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import GoodsReceipt, User
from ..models.receipts import PENDING_MESSAGE
from ..validation import GoodsReceiptSubmission
from .erp_response_interpreter import ErpOutcome
from .identity_service import PostingIdentity
from app.time_utils import parse_display_date, parse_erp_date, utcnow


class LedgerStateError(Exception):
    """Raised when a submission is finalized more than once."""
    pass


@dataclass(frozen=True)
class LedgerContext:
    """Everything shared by the rows of one submission."""
    submission_id: str
    delivery_note: str
    doc_date: date
    posting_date: date
    identity: PostingIdentity
    erp_endpoint: str | None


def new_submission_id() -> str:
    return uuid.uuid4().hex


def build_context(
    submission: GoodsReceiptSubmission,
    identity: PostingIdentity,
    erp_endpoint: str | None,
) -> LedgerContext:
    return LedgerContext(
        submission_id=new_submission_id(),
        delivery_note=submission.delivery_note,
        doc_date=parse_display_date(submission.doc_date),
        posting_date=parse_display_date(submission.post_date),
        identity=identity,
        erp_endpoint=erp_endpoint,
    )


class ReceiptSubmission:
    """The N ledger rows written for one Goods-Receipt submission."""

    def __init__(self, submission_id: str, records: list[GoodsReceipt]):
        self.submission_id = submission_id
        self.records = records
        self._finalized = False

    @property
    def refs(self) -> list[int]:
        return [record.id for record in self.records]

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def __len__(self) -> int:
        return len(self.records)

    @classmethod
    def create_pending(
        cls,
        submission: GoodsReceiptSubmission,
        erp_lines: list[dict],
        context: LedgerContext,
    ) -> "ReceiptSubmission":
        """
        Insert one pending row per line item and commit.

        erp_lines are the outbound payload lines, index-aligned with
        submission.items; each is stored as that row's request snapshot.
        """
        identity = context.identity
        tapped = identity.tapped_user
        session_user = identity.session_user

        records = []
        for item, erp_line in zip(submission.items, erp_lines):
            record = GoodsReceipt(
                submission_id=context.submission_id,
                delivery_note=context.delivery_note,
                doc_date=context.doc_date,
                posting_date=context.posting_date,
                po_no=item.po_no,
                line_no=item.line_no,
                qty=item.qty,
                plant=item.plant,
                sloc=item.sloc,
                batch_no=item.batch_no,
                manufacture_date=parse_erp_date(erp_line.get("manufacture_date")),
                success=False,
                error_message=PENDING_MESSAGE,
                # Actor: the card owner; contact details of the session account
                user_id=tapped.user_id,
                user_internal_id=tapped.id,
                user_email=session_user.email,
                department=session_user.department or tapped.department,
                logged_in_user_rfid=identity.session_rfid,
                posting_rfid=identity.tapped_rfid,
                erp_request=erp_line,
                erp_endpoint=context.erp_endpoint,
            )
            db.session.add(record)
            records.append(record)

        db.session.commit()
        return cls(context.submission_id, records)

    def _ensure_open(self) -> None:
        if self._finalized:
            raise LedgerStateError(f"Submission {self.submission_id} already finalized")

    def finalize(self, outcome: ErpOutcome, elapsed_ms: int | None) -> None:
        """Apply one ERP outcome to every row and commit."""
        self._ensure_open()
        snapshot = outcome.response_snapshot()

        for record in self.records:
            record.response_time_ms = elapsed_ms
            record.erp_response = snapshot
            if outcome.succeeded:
                record.success = True
                record.error_message = None
                record.material_doc_no = outcome.material_doc_no
                record.doc_year = outcome.doc_year
                record.posting_date = outcome.posting_date or record.posting_date
            else:
                record.success = False
                record.error_message = outcome.message

        db.session.commit()
        self._finalized = True

    def fail(self, message: str, elapsed_ms: int | None) -> None:
        """Mark every row failed after a fault outside the ERP answer."""
        self._ensure_open()
        for record in self.records:
            record.success = False
            record.error_message = message or "Unexpected error"
            record.response_time_ms = elapsed_ms

        db.session.commit()
        self._finalized = True


def get_submission_records(submission_id: str) -> list[GoodsReceipt]:
    return db.session.query(GoodsReceipt).filter_by(
        submission_id=submission_id
    ).order_by(GoodsReceipt.id).all()


# =============================================================================
# READ QUERIES
# =============================================================================

def _successful_with_document(query):
    return query.filter(
        GoodsReceipt.success.is_(True),
        GoodsReceipt.material_doc_no.isnot(None),
    )


def history_by_item(po_no: str, line_no: str) -> list[GoodsReceipt]:
    """Successful postings for one PO line, newest first."""
    query = db.session.query(GoodsReceipt).filter(
        GoodsReceipt.po_no == po_no,
        GoodsReceipt.line_no == line_no,
    )
    return _successful_with_document(query).order_by(
        GoodsReceipt.posting_date.desc(),
        GoodsReceipt.created_at.desc(),
        GoodsReceipt.id.desc(),
    ).all()


def dropdown_values(po_no: str, line_no: str | None = None) -> tuple[dict, int]:
    """
    Distinct delivery notes, posting dates, batch numbers and storage locations
    of successful postings for a PO (optionally one line).

    Returns (values, record_count).
    """
    query = _successful_with_document(
        db.session.query(GoodsReceipt).filter(GoodsReceipt.po_no == po_no)
    )
    if line_no:
        query = query.filter(GoodsReceipt.line_no == line_no)

    records = query.all()

    def distinct(values) -> list:
        return sorted({v for v in values if v})

    values = {
        "delivery_note": distinct(r.delivery_note for r in records),
        "posting_date": [d.isoformat() for d in distinct(r.posting_date for r in records)],
        "batch_no": distinct(r.batch_no for r in records),
        "sloc": distinct(r.sloc for r in records),
    }
    return values, len(records)


def list_history(
    *,
    po_no: str | None = None,
    line_no: str | None = None,
    delivery_note: str | None = None,
    plant: str | None = None,
    success: bool | None = None,
    logged_in_rfid: str | None = None,
    posting_rfid: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[GoodsReceipt], int]:
    """Filtered ledger listing, newest first. Returns (rows, total)."""
    query = db.session.query(GoodsReceipt)

    if po_no:
        query = query.filter(GoodsReceipt.po_no == po_no)
    if line_no:
        query = query.filter(GoodsReceipt.line_no == line_no)
    if delivery_note:
        query = query.filter(GoodsReceipt.delivery_note == delivery_note)
    if plant:
        query = query.filter(GoodsReceipt.plant == plant)
    if success is not None:
        query = query.filter(GoodsReceipt.success.is_(success))
    if logged_in_rfid:
        query = query.filter(GoodsReceipt.logged_in_user_rfid == logged_in_rfid)
    if posting_rfid:
        query = query.filter(GoodsReceipt.posting_rfid == posting_rfid)
    if from_date:
        query = query.filter(GoodsReceipt.posting_date >= from_date)
    if to_date:
        query = query.filter(GoodsReceipt.posting_date <= to_date)

    total = query.count()
    rows = query.order_by(GoodsReceipt.created_at.desc(), GoodsReceipt.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def total_received_qty(po_no: str, line_no: str) -> Decimal:
    total = db.session.query(func.coalesce(func.sum(GoodsReceipt.qty), 0)).filter(
        GoodsReceipt.po_no == po_no,
        GoodsReceipt.line_no == line_no,
        GoodsReceipt.success.is_(True),
    ).scalar()
    return Decimal(str(total))


def po_statistics(po_no: str) -> dict:
    """Posting counts, received quantity and timing for one PO."""
    records = db.session.query(GoodsReceipt).filter_by(po_no=po_no).all()

    successful = [r for r in records if r.success]
    failed = [r for r in records if r.is_failed]
    pending = [r for r in records if r.is_pending]
    timed = [r.response_time_ms for r in successful if r.response_time_ms is not None]
    latest = max(records, key=lambda r: (r.created_at or datetime.min, r.id), default=None)

    return {
        "po_no": po_no,
        "total_grs": len(records),
        "successful_grs": len(successful),
        "failed_grs": len(failed),
        "pending_grs": len(pending),
        "total_qty_received": float(sum((r.qty for r in successful), Decimal("0"))),
        "success_rate": round(len(successful) / len(records) * 100, 2) if records else 0,
        "average_response_time_ms": round(sum(timed) / len(timed), 2) if timed else None,
        "latest_gr": latest.to_dict() if latest else None,
    }


def list_pending(older_than_minutes: int = 0) -> list[GoodsReceipt]:
    """
    Rows still waiting for an ERP answer.

    Anything old here means the process died between pre-write and finalize;
    these rows need manual reconciliation against the ERP.
    """
    query = db.session.query(GoodsReceipt).filter(
        GoodsReceipt.success.is_(False),
        GoodsReceipt.error_message == PENDING_MESSAGE,
    )
    if older_than_minutes > 0:
        cutoff = utcnow() - timedelta(minutes=older_than_minutes)
        query = query.filter(GoodsReceipt.created_at < cutoff)
    return query.order_by(GoodsReceipt.created_at).all()


def posting_details(record: GoodsReceipt) -> dict:
    """Who was logged in and who tapped, resolved through the card numbers."""
    cards = {c for c in (record.logged_in_user_rfid, record.posting_rfid) if c}
    users = {}
    if cards:
        users = {
            u.id_card: u
            for u in db.session.query(User).filter(User.id_card.in_(cards)).all()
        }

    logged_in = users.get(record.logged_in_user_rfid)
    posted_by = users.get(record.posting_rfid)

    return {
        "logged_in_account": logged_in.user_id if logged_in else "Unknown",
        "logged_in_name": logged_in.display_name if logged_in else "Unknown",
        "logged_in_rfid": record.logged_in_user_rfid,
        "posted_by_account": posted_by.user_id if posted_by else "Unknown",
        "posted_by_name": posted_by.display_name if posted_by else "Unknown",
        "posted_by_rfid": record.posting_rfid,
        "is_different_person": record.is_posted_by_different_person,
    }
