"""create_users_table

Revision ID: 5c2e81a4d7f3
Revises: 
Create Date: 2026-10-17 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, UUID

# revision identifiers, used by Alembic.
revision: str = '5c2e81a4d7f3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

identity_status = ENUM('none', 'pending', 'verified', 'rejected', name='identity_status', create_type=False)


def upgrade() -> None:
    """Create users table."""
    identity_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('phone_number', sa.String(length=30), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('identity_status', identity_status, nullable=False, server_default='none'),
        sa.Column('identity_number', sa.String(length=20), nullable=True),
        sa.Column('identity_application_id', UUID(as_uuid=True), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('district', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_unique_constraint('uq_users_identity_number', 'users', ['identity_number'])


def downgrade() -> None:
    """Drop users table and its enums."""
    op.drop_constraint('uq_users_identity_number', 'users', type_='unique')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    identity_status.drop(op.get_bind(), checkfirst=True)
