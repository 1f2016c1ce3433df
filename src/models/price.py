from src.api.database.database import Base
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    TIMESTAMP,
    UniqueConstraint,
    text,
)


class PriceHourly(Base):
    # Fine-grained observation, kept for a short rolling window.
    __tablename__ = "price_hourly"
    __table_args__ = (
        UniqueConstraint(
            "coin_id",
            "currency_code",
            "timestamp",
            name="uq_price_hourly_coin_currency_timestamp",
        ),
        Index("ix_price_hourly_timestamp", "timestamp"),
    )

    price_id = Column(Integer, primary_key=True, nullable=False)
    coin_id = Column(String, ForeignKey("coins.id", ondelete="CASCADE"), nullable=False)
    currency_code = Column(
        String,
        ForeignKey("currencies.code", ondelete="CASCADE"),
        nullable=False,
    )
    timestamp = Column(DateTime(timezone=True), nullable=False)
    price = Column(Numeric(24, 8), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))


class PriceDaily(Base):
    # One value per UTC calendar day, kept for a long rolling window.
    __tablename__ = "price_daily"
    __table_args__ = (
        UniqueConstraint(
            "coin_id",
            "currency_code",
            "date",
            name="uq_price_daily_coin_currency_date",
        ),
        Index("ix_price_daily_date", "date"),
    )

    price_id = Column(Integer, primary_key=True, nullable=False)
    coin_id = Column(String, ForeignKey("coins.id", ondelete="CASCADE"), nullable=False)
    currency_code = Column(
        String,
        ForeignKey("currencies.code", ondelete="CASCADE"),
        nullable=False,
    )
    date = Column(Date, nullable=False)
    price = Column(Numeric(24, 8), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
