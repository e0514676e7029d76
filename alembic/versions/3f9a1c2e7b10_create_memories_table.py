"""create_memories_table

Revision ID: 3f9a1c2e7b10
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f9a1c2e7b10'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('memories',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='Unique identifier'),
        sa.Column('subject_type', sa.String(length=255), nullable=False, comment='Type label of the memoized entity'),
        sa.Column('subject_id', sa.String(length=64), nullable=False, comment='Primary key of the memoized entity'),
        sa.Column('state', sa.String(length=255), nullable=True, comment='State label at capture time'),
        sa.Column('payload', sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql'), nullable=False, comment='Captured document'),
        sa.Column('created_by', sa.String(length=64), nullable=True, comment='Actor that triggered the capture'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Capture timestamp (UTC)'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('memories', schema=None) as batch_op:
        batch_op.create_index('ix_memories_subject_created', ['subject_type', 'subject_id', 'created_at'], unique=False)
        batch_op.create_index('ix_memories_subject_state_created', ['subject_type', 'subject_id', 'state', 'created_at'], unique=False)
        batch_op.create_index('ix_memories_payload', ['payload'], unique=False, postgresql_using='gin')

    bind = op.get_bind()
    if bind.dialect.name == 'sqlite':
        op.execute(
            """
            CREATE TRIGGER IF NOT EXISTS prevent_memories_update
            BEFORE UPDATE ON memories
            BEGIN
                SELECT RAISE(ABORT, 'Memories are immutable and cannot be updated');
            END;
            """
        )
        op.execute(
            """
            CREATE TRIGGER IF NOT EXISTS prevent_memories_delete
            BEFORE DELETE ON memories
            BEGIN
                SELECT RAISE(ABORT, 'Memories are immutable and cannot be deleted');
            END;
            """
        )


def downgrade() -> None:
    """Downgrade schema."""
    bind = op.get_bind()
    if bind.dialect.name == 'sqlite':
        op.execute("DROP TRIGGER IF EXISTS prevent_memories_update")
        op.execute("DROP TRIGGER IF EXISTS prevent_memories_delete")

    with op.batch_alter_table('memories', schema=None) as batch_op:
        batch_op.drop_index('ix_memories_payload')
        batch_op.drop_index('ix_memories_subject_state_created')
        batch_op.drop_index('ix_memories_subject_created')

    op.drop_table('memories')
