"""Create residents table

Revision ID: 001
Revises: None
Create Date: 2024-01-15 00:00:00.000000+00:00

What:  Creates the `residents` table and its unique index on resident_id.
How:   Generic SQLAlchemy types only, so the same revision runs on
       PostgreSQL and SQLite.

Rollback: downgrade() drops the table (all resident data is lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "residents",

        sa.Column("id", sa.Uuid(), nullable=False, comment="Store-assigned primary key"),
        sa.Column(
            "resident_id",
            sa.String(64),
            nullable=False,
            comment="Business-facing resident identifier (immutable)",
        ),

        # Identity
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("middle_name", sa.String(100), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("gender", sa.String(20), nullable=False),
        sa.Column("civil_status", sa.String(20), nullable=False),

        # Contact
        sa.Column("contact_number", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("address", sa.JSON(), nullable=True),

        # Socio-economic
        sa.Column("occupation", sa.String(150), nullable=True),
        sa.Column("monthly_income", sa.Float(), nullable=True),
        sa.Column(
            "voter_status",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),

        # Registry state
        sa.Column("registration_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("qr_code", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'Active'"),
        ),

        # Timestamps (set by the application layer)
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),

        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "ix_residents_resident_id",
        "residents",
        ["resident_id"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("ix_residents_resident_id", table_name="residents")
    op.drop_table("residents")
