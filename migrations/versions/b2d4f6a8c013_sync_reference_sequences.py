"""sync reference id sequences with existing rows

Rows loaded by scripts or imports can carry sequential ids the sequences
never issued. Move each sequence to the largest sequential number present so
the next nextval() cannot collide with them.

Revision ID: b2d4f6a8c013
Revises: a1c3e5f7b901
Create Date: 2025-10-02 11:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'b2d4f6a8c013'
down_revision: Union[str, None] = 'a1c3e5f7b901'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

REFERENCE_FAMILIES = (
    ('EP', 'epics', 'epic_ref_seq'),
    ('US', 'user_stories', 'user_story_ref_seq'),
    ('REQ', 'requirements', 'requirement_ref_seq'),
    ('AC', 'acceptance_criteria', 'acceptance_criteria_ref_seq'),
    ('STD', 'steering_documents', 'steering_document_ref_seq'),
    ('PROMPT', 'prompts', 'prompt_ref_seq'),
)


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name != 'postgresql':
        return
    for prefix, table, sequence in REFERENCE_FAMILIES:
        max_number = bind.execute(
            sa.text(
                f"SELECT MAX(CAST(SUBSTRING(reference_id FROM :start) AS BIGINT)) FROM {table} "
                "WHERE reference_id ~ :pattern"
            ),
            {"start": len(prefix) + 2, "pattern": f"^{prefix}-([0-9]{{3}}|[1-9][0-9]{{3,}})$"},
        ).scalar()
        if max_number:
            bind.execute(
                sa.text(f"SELECT setval(:sequence, GREATEST(:value, (SELECT last_value FROM {sequence})), true)"),
                {"sequence": sequence, "value": max_number},
            )


def downgrade() -> None:
    # Sequences never move backwards.
    pass
