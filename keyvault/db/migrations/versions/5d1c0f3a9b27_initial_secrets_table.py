"""initial secrets table

Revision ID: 5d1c0f3a9b27
Revises:
Create Date: 2025-05-02 11:20:41.318024

"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision = "5d1c0f3a9b27"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "secrets",
        sa.Column("project_key", sa.String(length=255), nullable=False),
        sa.Column("secret_key", sa.String(length=255), nullable=False),
        sa.Column(
            "secret_value",
            sa.JSON().with_variant(JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("project_key", "secret_key"),
    )


def downgrade() -> None:
    op.drop_table("secrets")
