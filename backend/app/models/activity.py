from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class ErpActivityLog(db.Model):
    """
    Audit trail of every ERP-facing operation attempt.

    One row per attempt, successful or not. The actor's descriptive fields are
    copied at write time so the entry stays readable after the account changes.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "sap_activity_logs"
    __table_args__ = (
        db.Index("ix_sap_activity_logs_type_created", "activity_type", "created_at"),
        db.Index("ix_sap_activity_logs_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Classification
    activity_type = db.Column(db.String(64), nullable=False, index=True)  # get_po, create_gr, ...
    action = db.Column(db.String(16), nullable=False)  # view, create, update, delete, unknown

    # Actor snapshot
    user_id = db.Column(db.String(32), nullable=True)
    user_internal_id = db.Column(db.Integer, nullable=True)
    user_email = db.Column(db.String(100), nullable=True)
    first_name = db.Column(db.String(50), nullable=True)
    last_name = db.Column(db.String(50), nullable=True)
    full_name = db.Column(db.String(101), nullable=True)
    role = db.Column(db.String(100), nullable=True)
    department = db.Column(db.String(100), nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    # Business keys
    po_no = db.Column(db.String(32), nullable=True, index=True)
    line_no = db.Column(db.String(16), nullable=True)
    delivery_note = db.Column(db.String(64), nullable=True, index=True)
    material_doc_no = db.Column(db.String(32), nullable=True, index=True)
    plant = db.Column(db.String(16), nullable=True)

    request_payload = db.Column(db.JSON, nullable=True)
    response_data = db.Column(db.JSON, nullable=True)

    # Outcome
    success = db.Column(db.Boolean, nullable=False, index=True)
    status_code = db.Column(db.Integer, nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    response_time_ms = db.Column(db.Integer, nullable=True)
    erp_endpoint = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "activity_type": self.activity_type,
            "action": self.action,
            "user_id": self.user_id,
            "user_email": self.user_email,
            "full_name": self.full_name,
            "role": self.role,
            "department": self.department,
            "ip_address": self.ip_address,
            "po_no": self.po_no,
            "line_no": self.line_no,
            "delivery_note": self.delivery_note,
            "material_doc_no": self.material_doc_no,
            "plant": self.plant,
            "request_payload": self.request_payload,
            "response_data": self.response_data,
            "success": self.success,
            "status_code": self.status_code,
            "error_message": self.error_message,
            "response_time_ms": self.response_time_ms,
            "erp_endpoint": self.erp_endpoint,
            "created_at": to_utc_z(self.created_at),
        }
