"""initial schema with reference id sequences

Revision ID: a1c3e5f7b901
Revises:
Create Date: 2025-10-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f7b901'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# (prefix, table, sequence, server-side default function)
REFERENCE_FAMILIES = (
    ('EP', 'epics', 'epic_ref_seq', 'get_next_epic_ref_id'),
    ('US', 'user_stories', 'user_story_ref_seq', 'get_next_user_story_ref_id'),
    ('REQ', 'requirements', 'requirement_ref_seq', 'get_next_requirement_ref_id'),
    ('AC', 'acceptance_criteria', 'acceptance_criteria_ref_seq', 'get_next_acceptance_criteria_ref_id'),
    ('STD', 'steering_documents', 'steering_document_ref_seq', 'get_next_steering_document_ref_id'),
    ('PROMPT', 'prompts', 'prompt_ref_seq', 'get_next_prompt_ref_id'),
)

_NEXT_REF_FUNCTION = """
CREATE OR REPLACE FUNCTION {function}() RETURNS VARCHAR(20) AS $$
DECLARE
    next_id BIGINT;
BEGIN
    next_id := nextval('{sequence}');
    IF next_id < 1000 THEN
        RETURN '{prefix}-' || LPAD(next_id::TEXT, 3, '0');
    ELSE
        RETURN '{prefix}-' || next_id::TEXT;
    END IF;
END;
$$ LANGUAGE plpgsql VOLATILE;
"""


def _is_postgres() -> bool:
    return op.get_bind().dialect.name == 'postgresql'


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('username', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email'),
    )
    op.create_table(
        'epics',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('reference_id', sa.String(length=20), nullable=False),
        sa.Column('creator_id', sa.UUID(), nullable=False),
        sa.Column('assignee_id', sa.UUID(), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['creator_id'], ['users.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['assignee_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_id'),
    )
    op.create_index('idx_epics_status_priority', 'epics', ['status', 'priority'], unique=False)
    op.create_table(
        'user_stories',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('reference_id', sa.String(length=20), nullable=False),
        sa.Column('epic_id', sa.UUID(), nullable=False),
        sa.Column('creator_id', sa.UUID(), nullable=False),
        sa.Column('assignee_id', sa.UUID(), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_modified', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['epic_id'], ['epics.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['creator_id'], ['users.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['assignee_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_id'),
    )
    op.create_index('idx_user_stories_epic_status', 'user_stories', ['epic_id', 'status'], unique=False)
    op.create_table(
        'acceptance_criteria',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('reference_id', sa.String(length=20), nullable=False),
        sa.Column('user_story_id', sa.UUID(), nullable=False),
        sa.Column('author_id', sa.UUID(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_modified', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_story_id'], ['user_stories.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['author_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_id'),
    )
    op.create_index(
        'idx_acceptance_criteria_user_story_created', 'acceptance_criteria', ['user_story_id', 'created_at'], unique=False
    )
    op.create_table(
        'requirements',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('reference_id', sa.String(length=20), nullable=False),
        sa.Column('user_story_id', sa.UUID(), nullable=False),
        sa.Column('acceptance_criteria_id', sa.UUID(), nullable=True),
        sa.Column('creator_id', sa.UUID(), nullable=False),
        sa.Column('assignee_id', sa.UUID(), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_story_id'], ['user_stories.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['acceptance_criteria_id'], ['acceptance_criteria.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['creator_id'], ['users.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['assignee_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_id'),
    )
    op.create_index('idx_requirements_user_story_status', 'requirements', ['user_story_id', 'status'], unique=False)
    op.create_table(
        'steering_documents',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('reference_id', sa.String(length=20), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('creator_id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['creator_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_id'),
    )
    op.create_table(
        'prompts',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('reference_id', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('creator_id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['creator_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_id'),
        sa.UniqueConstraint('name'),
    )

    if not _is_postgres():
        return

    # Native counters plus server-side defaults so raw SQL inserts are numbered too.
    for prefix, table, sequence, function in REFERENCE_FAMILIES:
        op.execute(sa.text(f"CREATE SEQUENCE IF NOT EXISTS {sequence} START WITH 1"))
        op.execute(sa.text(_NEXT_REF_FUNCTION.format(function=function, sequence=sequence, prefix=prefix)))
        op.execute(sa.text(f"ALTER TABLE {table} ALTER COLUMN reference_id SET DEFAULT {function}()"))


def downgrade() -> None:
    if _is_postgres():
        for _prefix, table, sequence, function in REFERENCE_FAMILIES:
            op.execute(sa.text(f"ALTER TABLE {table} ALTER COLUMN reference_id DROP DEFAULT"))
            op.execute(sa.text(f"DROP FUNCTION IF EXISTS {function}()"))
            op.execute(sa.text(f"DROP SEQUENCE IF EXISTS {sequence}"))

    op.drop_table('prompts')
    op.drop_table('steering_documents')
    op.drop_index('idx_requirements_user_story_status', table_name='requirements')
    op.drop_table('requirements')
    op.drop_index('idx_acceptance_criteria_user_story_created', table_name='acceptance_criteria')
    op.drop_table('acceptance_criteria')
    op.drop_index('idx_user_stories_epic_status', table_name='user_stories')
    op.drop_table('user_stories')
    op.drop_index('idx_epics_status_priority', table_name='epics')
    op.drop_table('epics')
    op.drop_table('users')
