import enum
import re
import secrets

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, Enum, Float, Integer, String
from sqlalchemy.sql import func

from app.database import Base

CANDLE_ID_PATTERN = re.compile(r"[0-9a-fA-F]{24}")

# Largest value the stock column holds on every supported database (32-bit INTEGER)
MAX_STOCK = 2**31 - 1


def new_candle_id() -> str:
    """Generate a fresh candle identifier (24 lowercase hex characters)."""
    return secrets.token_hex(12)


def is_valid_candle_id(value) -> bool:
    """Check the identifier format without touching the database."""
    return isinstance(value, str) and CANDLE_ID_PATTERN.fullmatch(value) is not None


class CandleSize(str, enum.Enum):
    """Enum for candle size."""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class Candle(Base):
    """
    Candle model representing a catalog item and its inventory.

    Attributes:
        id: Unique identifier for the candle
        name: Candle name
        description: Marketing description
        price: Candle price (must be non-negative)
        stock: Available quantity (must be non-negative)
        scent: Primary scent
        size: Candle size (small, medium, large)
        is_active: False once the candle is soft-deleted
        tags: Free-form tags
        created_at: Timestamp when candle was created
        updated_at: Timestamp when candle was last updated
    """
    __tablename__ = "candles"

    id = Column(String(24), primary_key=True, default=new_candle_id)
    name = Column(String(100), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    price = Column(Float, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    scent = Column(String(100), nullable=False, index=True)
    size = Column(Enum(CandleSize), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Database-level constraints to ensure data integrity
    __table_args__ = (
        CheckConstraint('price >= 0', name='check_price_non_negative'),
        CheckConstraint('stock >= 0', name='check_stock_non_negative'),
    )

    def __repr__(self):
        return f"<Candle(id={self.id}, name='{self.name}', stock={self.stock}, is_active={self.is_active})>"
