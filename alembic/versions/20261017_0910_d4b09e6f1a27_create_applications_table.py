"""create_applications_table

Revision ID: d4b09e6f1a27
Revises: a81f37c0be52
Create Date: 2026-10-17 09:10:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, UUID

# revision identifiers, used by Alembic.
revision: str = 'd4b09e6f1a27'
down_revision: Union[str, None] = 'a81f37c0be52'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

review_level = ENUM(
    'superadmin', 'country', 'state', 'district', 'city', 'area',
    name='review_level',
    create_type=False,
)
application_status = ENUM('pending', 'approved', 'rejected', name='application_status', create_type=False)


def upgrade() -> None:
    """Create applications table."""
    review_level.create(op.get_bind(), checkfirst=True)
    application_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'applications',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('applicant_user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('country', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('state', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('district', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('city', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('area', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('application_level', review_level, nullable=False),
        sa.Column('reviewing_unit_id', UUID(as_uuid=True), nullable=True),
        sa.Column('status', application_status, nullable=False, server_default='pending'),
        sa.Column('is_office_bearer', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('review_history', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('comments', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('reviewed_by', sa.JSON(), nullable=True),
        sa.Column('verified_number', sa.String(length=20), nullable=True),
        sa.Column('documents', sa.JSON(), nullable=False, server_default='{}'),
        sa.Column('details', sa.JSON(), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_foreign_key(
        'applications_reviewing_unit_id_fkey',
        'applications', 'org_units',
        ['reviewing_unit_id'], ['id'],
        ondelete='SET NULL'
    )
    op.create_unique_constraint('uq_applications_verified_number', 'applications', ['verified_number'])
    op.create_index('ix_applications_applicant_user_id', 'applications', ['applicant_user_id'])
    op.create_index('ix_applications_reviewing_unit_id', 'applications', ['reviewing_unit_id'])
    op.create_index('idx_applications_status_level', 'applications', ['status', 'application_level'])
    op.create_index('idx_applications_applicant_status', 'applications', ['applicant_user_id', 'status'])


def downgrade() -> None:
    """Drop applications table and its enums."""
    op.drop_index('idx_applications_applicant_status', table_name='applications')
    op.drop_index('idx_applications_status_level', table_name='applications')
    op.drop_index('ix_applications_reviewing_unit_id', table_name='applications')
    op.drop_index('ix_applications_applicant_user_id', table_name='applications')
    op.drop_constraint('uq_applications_verified_number', 'applications', type_='unique')
    op.drop_constraint('applications_reviewing_unit_id_fkey', 'applications', type_='foreignkey')
    op.drop_table('applications')
    application_status.drop(op.get_bind(), checkfirst=True)
    review_level.drop(op.get_bind(), checkfirst=True)
