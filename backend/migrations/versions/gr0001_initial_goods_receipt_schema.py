"""initial goods receipt schema

Revision ID: gr0001
Revises:
Create Date: 2026-10-01 00:00:00.000000

Creates the ERP gateway schema from scratch:
- users: warehouse staff directory (external user_id, RFID card, status)
- session_tokens: hashed bearer tokens for password and RFID logins
- good_receipts: Goods-Receipt ledger, one row per submitted line
- sap_activity_logs: append-only audit trail of ERP-facing operations
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'gr0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users: staff directory
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=32), nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('full_name', sa.String(length=101), nullable=True),
        sa.Column('role', sa.String(length=100), nullable=True),
        sa.Column('department', sa.String(length=100), nullable=True),
        sa.Column('email', sa.String(length=100), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('id_card', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_user_id', 'users', ['user_id'], unique=True)
    op.create_index('ix_users_id_card', 'users', ['id_card'], unique=True)
    op.create_index('ix_users_department', 'users', ['department'])

    # ============================================================================
    # session_tokens: bearer sessions (hash only, never plaintext)
    # ============================================================================
    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('login_method', sa.String(length=16), nullable=False, server_default='password'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # good_receipts: Goods-Receipt ledger
    # Rows are written pending ("Processing...") before the ERP call and
    # finalized together per submission_id afterwards.
    # ============================================================================
    op.create_table(
        'good_receipts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.String(length=32), nullable=False),
        sa.Column('delivery_note', sa.String(length=64), nullable=False),
        sa.Column('doc_date', sa.Date(), nullable=False),
        sa.Column('posting_date', sa.Date(), nullable=True),
        sa.Column('po_no', sa.String(length=32), nullable=False),
        sa.Column('line_no', sa.String(length=16), nullable=False),
        sa.Column('qty', sa.Numeric(13, 3), nullable=False),
        sa.Column('plant', sa.String(length=16), nullable=False),
        sa.Column('sloc', sa.String(length=16), nullable=True),
        sa.Column('batch_no', sa.String(length=32), nullable=True),
        sa.Column('manufacture_date', sa.Date(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('material_doc_no', sa.String(length=32), nullable=True),
        sa.Column('doc_year', sa.String(length=8), nullable=True),
        sa.Column('response_time_ms', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.String(length=32), nullable=True),
        sa.Column('user_internal_id', sa.Integer(), nullable=True),
        sa.Column('user_email', sa.String(length=100), nullable=True),
        sa.Column('department', sa.String(length=100), nullable=True),
        sa.Column('logged_in_user_rfid', sa.String(length=50), nullable=True),
        sa.Column('posting_rfid', sa.String(length=50), nullable=True),
        sa.Column('erp_request', sa.JSON(), nullable=True),
        sa.Column('erp_response', sa.JSON(), nullable=True),
        sa.Column('erp_endpoint', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_good_receipts_po_line', 'good_receipts', ['po_no', 'line_no'])
    op.create_index('ix_good_receipts_submission', 'good_receipts', ['submission_id'])
    op.create_index('ix_good_receipts_delivery_note', 'good_receipts', ['delivery_note'])
    op.create_index('ix_good_receipts_success', 'good_receipts', ['success'])
    op.create_index('ix_good_receipts_material_doc_no', 'good_receipts', ['material_doc_no'])
    op.create_index('ix_good_receipts_user_id', 'good_receipts', ['user_id'])
    op.create_index('ix_good_receipts_logged_in_user_rfid', 'good_receipts', ['logged_in_user_rfid'])
    op.create_index('ix_good_receipts_posting_rfid', 'good_receipts', ['posting_rfid'])

    # ============================================================================
    # sap_activity_logs: append-only audit trail
    # ============================================================================
    op.create_table(
        'sap_activity_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('activity_type', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=16), nullable=False),
        sa.Column('user_id', sa.String(length=32), nullable=True),
        sa.Column('user_internal_id', sa.Integer(), nullable=True),
        sa.Column('user_email', sa.String(length=100), nullable=True),
        sa.Column('first_name', sa.String(length=50), nullable=True),
        sa.Column('last_name', sa.String(length=50), nullable=True),
        sa.Column('full_name', sa.String(length=101), nullable=True),
        sa.Column('role', sa.String(length=100), nullable=True),
        sa.Column('department', sa.String(length=100), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('po_no', sa.String(length=32), nullable=True),
        sa.Column('line_no', sa.String(length=16), nullable=True),
        sa.Column('delivery_note', sa.String(length=64), nullable=True),
        sa.Column('material_doc_no', sa.String(length=32), nullable=True),
        sa.Column('plant', sa.String(length=16), nullable=True),
        sa.Column('request_payload', sa.JSON(), nullable=True),
        sa.Column('response_data', sa.JSON(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('status_code', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('response_time_ms', sa.Integer(), nullable=True),
        sa.Column('erp_endpoint', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sap_activity_logs_activity_type', 'sap_activity_logs', ['activity_type'])
    op.create_index('ix_sap_activity_logs_po_no', 'sap_activity_logs', ['po_no'])
    op.create_index('ix_sap_activity_logs_delivery_note', 'sap_activity_logs', ['delivery_note'])
    op.create_index('ix_sap_activity_logs_material_doc_no', 'sap_activity_logs', ['material_doc_no'])
    op.create_index('ix_sap_activity_logs_success', 'sap_activity_logs', ['success'])
    op.create_index('ix_sap_activity_logs_created_at', 'sap_activity_logs', ['created_at'])
    op.create_index('ix_sap_activity_logs_type_created', 'sap_activity_logs', ['activity_type', 'created_at'])
    op.create_index('ix_sap_activity_logs_user_created', 'sap_activity_logs', ['user_id', 'created_at'])


def downgrade():
    op.drop_table('sap_activity_logs')
    op.drop_table('good_receipts')
    op.drop_table('session_tokens')
    op.drop_table('users')
