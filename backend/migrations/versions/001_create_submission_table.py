"""Create submission table

Revision ID: 001
Revises:
Create Date: 2026-10-12 00:00:00.000000

Attachment slots hold tagged AttachmentRef JSON (attachment_ref/v2).
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create submission table with unique identity fields."""

    op.create_table(
        'submission',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('kind', sa.String(32), nullable=False),

        # Identity
        sa.Column('first_name', sa.String(50), nullable=False),
        sa.Column('last_name', sa.String(50), nullable=False),
        sa.Column('email', sa.String(254), nullable=False),
        sa.Column('phone', sa.String(10), nullable=False),
        sa.Column('national_id', sa.String(12), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=False),

        # Address
        sa.Column('address', sa.String(200), nullable=False),
        sa.Column('city', sa.String(50), nullable=False),
        sa.Column('state', sa.String(50), nullable=False),
        sa.Column('postal_code', sa.String(6), nullable=False),

        # Kind-specific
        sa.Column('course_name', sa.String(100), nullable=True),
        sa.Column('investment_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('investment_goals', sa.Text(), nullable=True),

        # Attachments
        sa.Column('primary_id_document', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('signature_or_second_document', postgresql.JSONB(astext_type=sa.Text()), nullable=False),

        # Consent
        sa.Column('terms_accepted', sa.Boolean(), nullable=False),
        sa.Column('marketing_opt_in', sa.Boolean(), nullable=False, server_default=sa.false()),

        # Review lifecycle
        sa.Column('status', sa.String(32), nullable=False, server_default='pending_review'),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.String(100), nullable=True),
        sa.Column('reviewed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),

        # Constraints
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_submission_email'),
        sa.UniqueConstraint('phone', name='uq_submission_phone'),
        sa.UniqueConstraint('national_id', name='uq_submission_national_id'),
        sa.CheckConstraint(
            "status IN ('pending_review', 'under_review', 'documents_required', 'approved', 'rejected')",
            name='ck_submission_status',
        ),
        sa.CheckConstraint(
            "kind IN ('registration', 'trading_application')",
            name='ck_submission_kind',
        ),
        sa.CheckConstraint(
            "(reviewed_by IS NULL) = (reviewed_at IS NULL)",
            name='ck_submission_reviewed_pair',
        ),
    )

    op.create_index('ix_submission_status', 'submission', ['status'])
    op.create_index('ix_submission_created_at', 'submission', ['created_at'])
    op.create_index('ix_submission_course_name', 'submission', ['course_name'])
    op.create_index('ix_submission_kind_status', 'submission', ['kind', 'status'])


def downgrade():
    """Drop submission table."""
    op.drop_index('ix_submission_kind_status', table_name='submission')
    op.drop_index('ix_submission_course_name', table_name='submission')
    op.drop_index('ix_submission_created_at', table_name='submission')
    op.drop_index('ix_submission_status', table_name='submission')
    op.drop_table('submission')
