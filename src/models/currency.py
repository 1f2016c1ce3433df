from src.api.database.database import Base
from sqlalchemy import Column, String


class Currency(Base):
    # Quote currency, keyed by its lowercase code (e.g. "usd").
    __tablename__ = "currencies"

    code = Column(String, primary_key=True, nullable=False)
    name = Column(String, nullable=False)
