"""create_org_units_tables

Revision ID: a81f37c0be52
Revises: 5c2e81a4d7f3
Create Date: 2026-10-17 09:05:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, UUID

# revision identifiers, used by Alembic.
revision: str = 'a81f37c0be52'
down_revision: Union[str, None] = '5c2e81a4d7f3'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

unit_level = ENUM('country', 'state', 'district', 'city', 'area', name='unit_level', create_type=False)
unit_status = ENUM('active', 'inactive', name='unit_status', create_type=False)
bearer_role = ENUM('president', 'secretary', 'treasurer', name='bearer_role', create_type=False)
term_status = ENUM('active', 'completed', 'terminated', name='term_status', create_type=False)
member_status = ENUM('active', 'inactive', name='member_status', create_type=False)

ENUMS = (unit_level, unit_status, bearer_role, term_status, member_status)


def _location_columns() -> list[sa.Column]:
    return [
        sa.Column(key, sa.String(length=100), nullable=False, server_default='')
        for key in ('country', 'state', 'district', 'city', 'area')
    ]


def upgrade() -> None:
    """Create org_units, office_bearer_terms and unit_members."""
    for enum_type in ENUMS:
        enum_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'org_units',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('level', unit_level, nullable=False),
        *_location_columns(),
        sa.Column('parent_unit_id', UUID(as_uuid=True), nullable=True),
        sa.Column('access_code', sa.String(length=40), nullable=False),
        sa.Column('status', unit_status, nullable=False, server_default='active'),
        sa.Column('current_term_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('current_term_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('current_term_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('previous_terms', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('contact', sa.JSON(), nullable=False, server_default='{}'),
        sa.Column('established_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_foreign_key(
        'org_units_parent_unit_id_fkey',
        'org_units', 'org_units',
        ['parent_unit_id'], ['id'],
        ondelete='SET NULL'
    )
    op.create_unique_constraint('uq_org_units_access_code', 'org_units', ['access_code'])
    op.create_index('ix_org_units_parent_unit_id', 'org_units', ['parent_unit_id'])
    op.create_index('idx_org_units_level_status', 'org_units', ['level', 'status'])
    op.create_index('idx_org_units_location', 'org_units', ['country', 'state', 'district', 'city'])
    op.create_index(
        'uq_org_units_active_location',
        'org_units',
        ['level', 'country', 'state', 'district', 'city', 'area'],
        unique=True,
        postgresql_where=sa.text("status = 'active' AND level IN ('city', 'area')"),
    )

    op.create_table(
        'office_bearer_terms',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('unit_id', UUID(as_uuid=True), nullable=False),
        sa.Column('role', bearer_role, nullable=False),
        sa.Column('level', unit_level, nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=220), nullable=False),
        sa.Column('identity_number', sa.String(length=20), nullable=True),
        sa.Column('document', sa.String(length=500), nullable=True),
        sa.Column('photo', sa.String(length=500), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', term_status, nullable=False, server_default='active'),
        sa.Column('end_reason', sa.Text(), nullable=True),
        sa.Column('history', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_foreign_key(
        'office_bearer_terms_unit_id_fkey',
        'office_bearer_terms', 'org_units',
        ['unit_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_index('ix_office_bearer_terms_unit_id', 'office_bearer_terms', ['unit_id'])
    op.create_index('ix_office_bearer_terms_user_id', 'office_bearer_terms', ['user_id'])
    op.create_index('idx_office_bearer_terms_unit_role', 'office_bearer_terms', ['unit_id', 'role'])
    # One active position per user per level across the registry.
    op.create_index(
        'uq_office_bearer_terms_active_user_level',
        'office_bearer_terms',
        ['user_id', 'level'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        'unit_members',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('unit_id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=220), nullable=False),
        sa.Column('identity_number', sa.String(length=20), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone_number', sa.String(length=30), nullable=True),
        sa.Column('address', sa.JSON(), nullable=False, server_default='{}'),
        sa.Column('document', sa.String(length=500), nullable=True),
        sa.Column('photo', sa.String(length=500), nullable=True),
        sa.Column('added_by', UUID(as_uuid=True), nullable=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('status', member_status, nullable=False, server_default='active'),
    )
    op.create_foreign_key(
        'unit_members_unit_id_fkey',
        'unit_members', 'org_units',
        ['unit_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_index('ix_unit_members_unit_id', 'unit_members', ['unit_id'])
    op.create_index('ix_unit_members_user_id', 'unit_members', ['user_id'])
    op.create_index('idx_unit_members_unit_user', 'unit_members', ['unit_id', 'user_id'], unique=True)


def downgrade() -> None:
    """Drop roster, term and unit tables and their enums."""
    op.drop_index('idx_unit_members_unit_user', table_name='unit_members')
    op.drop_index('ix_unit_members_user_id', table_name='unit_members')
    op.drop_index('ix_unit_members_unit_id', table_name='unit_members')
    op.drop_constraint('unit_members_unit_id_fkey', 'unit_members', type_='foreignkey')
    op.drop_table('unit_members')

    op.drop_index('uq_office_bearer_terms_active_user_level', table_name='office_bearer_terms')
    op.drop_index('idx_office_bearer_terms_unit_role', table_name='office_bearer_terms')
    op.drop_index('ix_office_bearer_terms_user_id', table_name='office_bearer_terms')
    op.drop_index('ix_office_bearer_terms_unit_id', table_name='office_bearer_terms')
    op.drop_constraint('office_bearer_terms_unit_id_fkey', 'office_bearer_terms', type_='foreignkey')
    op.drop_table('office_bearer_terms')

    op.drop_index('uq_org_units_active_location', table_name='org_units')
    op.drop_index('idx_org_units_location', table_name='org_units')
    op.drop_index('idx_org_units_level_status', table_name='org_units')
    op.drop_index('ix_org_units_parent_unit_id', table_name='org_units')
    op.drop_constraint('uq_org_units_access_code', 'org_units', type_='unique')
    op.drop_constraint('org_units_parent_unit_id_fkey', 'org_units', type_='foreignkey')
    op.drop_table('org_units')

    for enum_type in reversed(ENUMS):
        enum_type.drop(op.get_bind(), checkfirst=True)
