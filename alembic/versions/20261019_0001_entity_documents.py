"""entity documents

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "entity_documents",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("organization_id", sa.String(length=64), nullable=True),
        sa.Column("body", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_entity_documents_entity_type", "entity_documents", ["entity_type"], unique=False)
    op.create_index("ix_entity_documents_organization_id", "entity_documents", ["organization_id"], unique=False)
    op.create_index("ix_entity_documents_created_at", "entity_documents", ["created_at"], unique=False)
    op.create_index(
        "ix_entity_documents_type_org",
        "entity_documents",
        ["entity_type", "organization_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_entity_documents_type_org", table_name="entity_documents")
    op.drop_index("ix_entity_documents_created_at", table_name="entity_documents")
    op.drop_index("ix_entity_documents_organization_id", table_name="entity_documents")
    op.drop_index("ix_entity_documents_entity_type", table_name="entity_documents")
    op.drop_table("entity_documents")
