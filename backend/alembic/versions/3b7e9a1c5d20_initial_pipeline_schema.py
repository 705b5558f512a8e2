"""Initial pipeline schema: customers, diagrams, session notes, action items, queue jobs

Revision ID: 3b7e9a1c5d20
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b7e9a1c5d20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'customer',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('is_unknown', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_customer_name', 'customer', ['name'])

    op.create_table(
        'diagram',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customer.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'diagram_version',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('diagram_id', sa.Integer(), sa.ForeignKey('diagram.id', ondelete='CASCADE'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('source', sa.Text(), nullable=False),
        sa.Column('image_path', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('diagram_id', 'version', name='uq_diagram_version_number'),
    )
    op.create_index('ix_diagram_version_diagram_id', 'diagram_version', ['diagram_id'])

    op.create_table(
        'diagram_session',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('diagram_id', sa.Integer(), sa.ForeignKey('diagram.id', ondelete='CASCADE'), nullable=False),
        sa.Column('source_id', sa.String(), nullable=False),
        sa.Column('processed_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_diagram_session_diagram_id', 'diagram_session', ['diagram_id'])
    op.create_index('ix_diagram_session_source_id', 'diagram_session', ['source_id'])

    op.create_table(
        'session_note',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('source_id', sa.String(), nullable=False, unique=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customer.id', ondelete='SET NULL'), nullable=True),
        sa.Column('call_type', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('action_items', sa.JSON(), nullable=True),
        sa.Column('components', sa.JSON(), nullable=True),
        sa.Column('gaps', sa.JSON(), nullable=True),
        sa.Column('skipped', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('session_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_session_note_customer_id', 'session_note', ['customer_id'])

    op.create_table(
        'action_item',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customer.id', ondelete='CASCADE'), nullable=False),
        sa.Column('session_note_id', sa.Integer(), sa.ForeignKey('session_note.id', ondelete='SET NULL'), nullable=True),
        sa.Column('owner', sa.String(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('session_date', sa.Date(), nullable=True),
        sa.Column('session_title', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_action_item_customer_id', 'action_item', ['customer_id'])
    op.create_index('ix_action_item_session_note_id', 'action_item', ['session_note_id'])
    op.create_index('ix_action_item_completed', 'action_item', ['completed'])

    op.create_table(
        'queue_job',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('source_id', sa.String(), nullable=False, unique=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('result_summary', sa.Text(), nullable=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customer.id', ondelete='SET NULL'), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_queue_job_status', 'queue_job', ['status'])


def downgrade() -> None:
    op.drop_index('ix_queue_job_status', table_name='queue_job')
    op.drop_table('queue_job')
    op.drop_index('ix_action_item_completed', table_name='action_item')
    op.drop_index('ix_action_item_session_note_id', table_name='action_item')
    op.drop_index('ix_action_item_customer_id', table_name='action_item')
    op.drop_table('action_item')
    op.drop_index('ix_session_note_customer_id', table_name='session_note')
    op.drop_table('session_note')
    op.drop_index('ix_diagram_session_source_id', table_name='diagram_session')
    op.drop_index('ix_diagram_session_diagram_id', table_name='diagram_session')
    op.drop_table('diagram_session')
    op.drop_index('ix_diagram_version_diagram_id', table_name='diagram_version')
    op.drop_table('diagram_version')
    op.drop_table('diagram')
    op.drop_index('ix_customer_name', table_name='customer')
    op.drop_table('customer')
