from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Optional

from app.models.candle import MAX_STOCK, CandleSize


class CandleBase(BaseModel):
    """Base schema for Candle with common attributes."""
    name: str = Field(..., min_length=1, max_length=100, description="Candle name", examples=["Vanilla Dream"])
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Detailed description of the candle",
        examples=["A luxurious vanilla-scented candle that fills your room with warmth and comfort"],
    )
    price: float = Field(..., ge=0, description="Price in USD (must be non-negative)", examples=[25.99])
    stock: int = Field(..., ge=0, le=MAX_STOCK, description="Available stock (must be non-negative)", examples=[10])
    scent: str = Field(..., min_length=1, max_length=100, description="Primary scent", examples=["vanilla"])
    size: CandleSize = Field(..., description="Candle size")
    tags: list[str] = Field(default_factory=list, description="Tags associated with the candle")


class CandleCreate(CandleBase):
    """Schema for creating a new candle."""
    model_config = ConfigDict(extra="forbid")


class CandleUpdate(BaseModel):
    """Schema for updating an existing candle. All fields are optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=100, description="Candle name")
    description: Optional[str] = Field(None, min_length=1, max_length=500, description="Candle description")
    price: Optional[float] = Field(None, ge=0, description="Price in USD")
    stock: Optional[int] = Field(None, ge=0, le=MAX_STOCK, description="Available stock")
    scent: Optional[str] = Field(None, min_length=1, max_length=100, description="Primary scent")
    size: Optional[CandleSize] = Field(None, description="Candle size")
    tags: Optional[list[str]] = Field(None, description="Replaces the existing tags")
    is_active: Optional[bool] = Field(None, description="Whether the candle is available for sale")

    model_config = ConfigDict(extra="forbid")


class StockAdjustment(BaseModel):
    """Schema for a relative stock change."""
    quantity: float = Field(
        ...,
        strict=True,
        description="Quantity to add (positive) or subtract (negative) from current stock",
        examples=[5, -2],
    )

    model_config = ConfigDict(extra="forbid")


class CandleResponse(CandleBase):
    """Schema for candle response including all fields."""
    id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
