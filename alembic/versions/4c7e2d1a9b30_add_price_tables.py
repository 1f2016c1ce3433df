"""add coin, currency and price tables

Revision ID: 4c7e2d1a9b30
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4c7e2d1a9b30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "coins",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("symbol", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "currencies",
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("code"),
    )

    op.create_table(
        "coin_metadata",
        sa.Column("coin_id", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("homepage_url", sa.String(), nullable=True),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["coin_id"], ["coins.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("coin_id"),
    )

    op.create_table(
        "price_hourly",
        sa.Column("price_id", sa.Integer(), nullable=False),
        sa.Column("coin_id", sa.String(), nullable=False),
        sa.Column("currency_code", sa.String(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Numeric(24, 8), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["coin_id"], ["coins.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["currency_code"], ["currencies.code"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("price_id"),
        sa.UniqueConstraint(
            "coin_id",
            "currency_code",
            "timestamp",
            name="uq_price_hourly_coin_currency_timestamp",
        ),
    )
    op.create_index(
        "ix_price_hourly_timestamp",
        "price_hourly",
        ["timestamp"],
        unique=False,
    )

    op.create_table(
        "price_daily",
        sa.Column("price_id", sa.Integer(), nullable=False),
        sa.Column("coin_id", sa.String(), nullable=False),
        sa.Column("currency_code", sa.String(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("price", sa.Numeric(24, 8), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["coin_id"], ["coins.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["currency_code"], ["currencies.code"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("price_id"),
        sa.UniqueConstraint(
            "coin_id",
            "currency_code",
            "date",
            name="uq_price_daily_coin_currency_date",
        ),
    )
    op.create_index(
        "ix_price_daily_date",
        "price_daily",
        ["date"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_price_daily_date", table_name="price_daily")
    op.drop_table("price_daily")
    op.drop_index("ix_price_hourly_timestamp", table_name="price_hourly")
    op.drop_table("price_hourly")
    op.drop_table("coin_metadata")
    op.drop_table("currencies")
    op.drop_table("coins")
