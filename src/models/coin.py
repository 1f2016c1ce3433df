from src.api.database.database import Base
from sqlalchemy import Column, ForeignKey, String, Text, TIMESTAMP, text
from sqlalchemy.orm import relationship


class Coin(Base):
    # Tracked cryptocurrency, keyed by its CoinGecko id (e.g. "bitcoin").
    __tablename__ = "coins"

    id = Column(String, primary_key=True, nullable=False)
    symbol = Column(String, nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    coin_metadata = relationship(
        "CoinMetadata",
        back_populates="coin",
        uselist=False,
        cascade="all, delete-orphan",
    )


class CoinMetadata(Base):
    # Descriptive data fetched lazily from CoinGecko on first request.
    __tablename__ = "coin_metadata"

    coin_id = Column(
        String,
        ForeignKey("coins.id", ondelete="CASCADE"),
        primary_key=True,
        nullable=False,
    )
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    homepage_url = Column(String, nullable=True)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    coin = relationship("Coin", back_populates="coin_metadata")
