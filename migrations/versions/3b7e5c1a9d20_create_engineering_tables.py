"""create engineering tables

Revision ID: 3b7e5c1a9d20
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3b7e5c1a9d20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

REVISION_STATE = sa.Enum('VIGENTE', 'OBSOLETA', 'ELIMINADA', name='revisionstate')
JOINT_CATEGORY = sa.Enum('WELD', 'BOLT', name='jointcategory')
SHOP_FIELD = sa.Enum('SHOP', 'FIELD', name='shopfield')
FILE_TYPE = sa.Enum('pdf', 'idf', 'dwg', 'other', name='filetype')
IMPACT_ENTITY_TYPE = sa.Enum('SPOOL', 'JOINT', name='impactentitytype')
IMPACT_CHANGE_TYPE = sa.Enum('NEW', 'DELETE', 'MODIFY', name='impactchangetype')


def _audit_columns():
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'isometrics',
        *_audit_columns(),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('code', sa.String(), nullable=False),
        sa.Column('line_number', sa.String(), nullable=True),
        sa.Column('area', sa.String(), nullable=True),
        sa.Column('sub_area', sa.String(), nullable=True),
        sa.Column('line_type', sa.String(), nullable=True),
        sa.Column('current_revision_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.UniqueConstraint('project_id', 'code', name='uq_isometrics_project_code'),
    )
    op.create_index('ix_isometrics_project_id', 'isometrics', ['project_id'])
    op.create_index('ix_isometrics_code', 'isometrics', ['code'])

    op.create_table(
        'isometric_revisions',
        *_audit_columns(),
        sa.Column('isometric_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('isometrics.id'), nullable=False),
        sa.Column('code', sa.String(), nullable=False),
        sa.Column('state', REVISION_STATE, nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=True),
        sa.Column('client_file_code', sa.String(), nullable=True),
        sa.Column('client_revision_code', sa.String(), nullable=True),
        sa.Column('transmittal_code', sa.String(), nullable=True),
        sa.Column('transmittal_date', sa.Date(), nullable=True),
        sa.Column('spooling_status', sa.String(), nullable=True),
        sa.Column('spooling_date', sa.Date(), nullable=True),
        sa.Column('spooling_sent_date', sa.Date(), nullable=True),
        sa.Column('total_joints_count', sa.Integer(), nullable=True),
        sa.Column('executed_joints_count', sa.Integer(), nullable=True),
        sa.Column('pending_joints_count', sa.Integer(), nullable=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
    )
    op.create_index('ix_isometric_revisions_isometric_id', 'isometric_revisions', ['isometric_id'])
    op.create_index('ix_isometric_revisions_state', 'isometric_revisions', ['state'])

    # Circular reference, added once both tables exist
    op.create_foreign_key(
        'fk_isometrics_current_revision', 'isometrics', 'isometric_revisions',
        ['current_revision_id'], ['id'],
    )

    op.create_table(
        'spools',
        *_audit_columns(),
        sa.Column('revision_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('isometric_revisions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('sheet', sa.String(), nullable=True),
        sa.Column('piping_class', sa.String(), nullable=True),
        sa.Column('fab_location', sa.String(), nullable=True),
        sa.Column('diameter_in', sa.Float(), nullable=True),
        sa.Column('material', sa.String(), nullable=True),
        sa.Column('schedule', sa.String(), nullable=True),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('requires_pwht', sa.Boolean(), nullable=False),
        sa.Column('requires_painting', sa.Boolean(), nullable=False),
        sa.UniqueConstraint('revision_id', 'name', name='uq_spools_revision_name'),
    )
    op.create_index('ix_spools_revision_id', 'spools', ['revision_id'])

    op.create_table(
        'joints',
        *_audit_columns(),
        sa.Column('revision_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('isometric_revisions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('spool_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('spools.id'), nullable=True),
        sa.Column('tag', sa.String(), nullable=False),
        sa.Column('joint_category', JOINT_CATEGORY, nullable=False),
        sa.Column('joint_type', sa.String(), nullable=True),
        sa.Column('diameter_in', sa.Float(), nullable=True),
        sa.Column('schedule', sa.String(), nullable=True),
        sa.Column('thickness', sa.Float(), nullable=True),
        sa.Column('material', sa.String(), nullable=True),
        sa.Column('rating', sa.String(), nullable=True),
        sa.Column('bolt_size', sa.String(), nullable=True),
        sa.Column('shop_field', SHOP_FIELD, nullable=False),
        sa.Column('sheet', sa.String(), nullable=True),
        sa.UniqueConstraint('revision_id', 'tag', name='uq_joints_revision_tag'),
    )
    op.create_index('ix_joints_revision_id', 'joints', ['revision_id'])

    op.create_table(
        'materials',
        *_audit_columns(),
        sa.Column('revision_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('isometric_revisions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('spool_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('spools.id'), nullable=True),
        sa.Column('item_code', sa.String(), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('quantity', sa.Float(), nullable=True),
        sa.Column('quantity_unit', sa.String(), nullable=True),
        sa.Column('piping_class', sa.String(), nullable=True),
    )
    op.create_index('ix_materials_revision_id', 'materials', ['revision_id'])

    op.create_table(
        'revision_files',
        *_audit_columns(),
        sa.Column('revision_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('isometric_revisions.id'), nullable=False),
        sa.Column('storage_path', sa.String(), nullable=False),
        sa.Column('file_type', FILE_TYPE, nullable=False),
        sa.Column('file_name', sa.String(), nullable=True),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False),
        sa.Column('file_size_bytes', sa.BigInteger(), nullable=True),
        sa.Column('uploaded_by', postgresql.UUID(as_uuid=True), nullable=True),
    )
    op.create_index('ix_revision_files_revision_id', 'revision_files', ['revision_id'])

    op.create_table(
        'isometric_impacts',
        *_audit_columns(),
        sa.Column('revision_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('isometric_revisions.id'), nullable=False),
        sa.Column('entity_type', IMPACT_ENTITY_TYPE, nullable=False),
        sa.Column('entity_identifier', sa.String(), nullable=False),
        sa.Column('change_type', IMPACT_CHANGE_TYPE, nullable=False),
        sa.Column('changes', postgresql.JSONB(), nullable=False),
    )
    op.create_index('ix_isometric_impacts_revision_id', 'isometric_impacts', ['revision_id'])


def downgrade() -> None:
    op.drop_index('ix_isometric_impacts_revision_id', table_name='isometric_impacts')
    op.drop_table('isometric_impacts')
    op.drop_index('ix_revision_files_revision_id', table_name='revision_files')
    op.drop_table('revision_files')
    op.drop_index('ix_materials_revision_id', table_name='materials')
    op.drop_table('materials')
    op.drop_index('ix_joints_revision_id', table_name='joints')
    op.drop_table('joints')
    op.drop_index('ix_spools_revision_id', table_name='spools')
    op.drop_table('spools')
    op.drop_constraint('fk_isometrics_current_revision', 'isometrics', type_='foreignkey')
    op.drop_index('ix_isometric_revisions_state', table_name='isometric_revisions')
    op.drop_index('ix_isometric_revisions_isometric_id', table_name='isometric_revisions')
    op.drop_table('isometric_revisions')
    op.drop_index('ix_isometrics_code', table_name='isometrics')
    op.drop_index('ix_isometrics_project_id', table_name='isometrics')
    op.drop_table('isometrics')

    bind = op.get_bind()
    for enum_type in (
        IMPACT_CHANGE_TYPE, IMPACT_ENTITY_TYPE, FILE_TYPE, SHOP_FIELD, JOINT_CATEGORY, REVISION_STATE,
    ):
        enum_type.drop(bind, checkfirst=True)
