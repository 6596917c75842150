from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database import get_db
from app.services.candle_service import (
    CandleService,
    CandleNotFoundError,
    InsufficientStockError,
    InvalidIdentifierError,
    InvalidQuantityError,
)
from app.schemas.candle import (
    CandleCreate,
    CandleUpdate,
    CandleResponse,
    StockAdjustment,
)

router = APIRouter(prefix="/candles", tags=["Candles"])


def _not_found(e: CandleNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _bad_request(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post(
    "/",
    response_model=CandleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new candle",
    description="Create a new candle. New candles are always active."
)
def create_candle(
    candle_data: CandleCreate,
    db: Session = Depends(get_db)
):
    """
    Create a new candle.

    - **name**: Candle name (required)
    - **description**: Candle description (required)
    - **price**: Price, must be non-negative (required)
    - **stock**: Initial stock quantity, must be non-negative (required)
    - **scent**: Primary scent (required)
    - **size**: small, medium or large (required)
    - **tags**: Optional list of tags
    """
    service = CandleService(db)
    try:
        return service.create(candle_data)
    except InvalidQuantityError as e:
        raise _bad_request(e)


@router.get(
    "/",
    response_model=List[CandleResponse],
    summary="List active candles",
    description="Get all active candles, optionally filtered by scent (case-insensitive)."
)
def list_candles(
    scent: Optional[str] = Query(None, description="Filter candles by scent (case-insensitive)"),
    db: Session = Depends(get_db)
):
    """Get active candles. Soft-deleted candles are never listed."""
    service = CandleService(db)
    if scent:
        return service.list_by_scent(scent)
    return service.list_active()


@router.get(
    "/{candle_id}",
    response_model=CandleResponse,
    summary="Get candle by ID",
    description="Get a specific candle by ID. Soft-deleted candles are still returned."
)
def get_candle(
    candle_id: str,
    db: Session = Depends(get_db)
):
    """Get a candle by ID."""
    service = CandleService(db)
    try:
        return service.get_by_id(candle_id)
    except InvalidIdentifierError as e:
        raise _bad_request(e)
    except CandleNotFoundError as e:
        raise _not_found(e)


@router.patch(
    "/{candle_id}",
    response_model=CandleResponse,
    summary="Update a candle",
    description="Update candle details. Only provided fields will be updated."
)
def update_candle(
    candle_id: str,
    candle_data: CandleUpdate,
    db: Session = Depends(get_db)
):
    """
    Update a candle.

    Partial updates are supported - only include fields you want to change.
    Tags are replaced as a whole.
    """
    service = CandleService(db)
    try:
        return service.update(candle_id, candle_data)
    except (InvalidIdentifierError, InvalidQuantityError) as e:
        raise _bad_request(e)
    except CandleNotFoundError as e:
        raise _not_found(e)


@router.patch(
    "/{candle_id}/stock",
    response_model=CandleResponse,
    summary="Adjust candle stock",
    description="""
    Add to or subtract from the stock of a candle.

    Use a positive quantity to restock and a negative one to consume stock.
    The change is applied atomically and is refused with a 400 error if it
    would take the stock below zero.
    """
)
def adjust_candle_stock(
    candle_id: str,
    adjustment: StockAdjustment,
    db: Session = Depends(get_db)
):
    """
    Adjust the stock of a candle.

    - **quantity**: Signed whole number to add to the current stock
    """
    service = CandleService(db)
    try:
        return service.adjust_stock(candle_id, adjustment.quantity)
    except (InvalidIdentifierError, InvalidQuantityError, InsufficientStockError) as e:
        raise _bad_request(e)
    except CandleNotFoundError as e:
        raise _not_found(e)


@router.delete(
    "/{candle_id}",
    response_model=CandleResponse,
    summary="Delete a candle",
    description="Soft delete a candle by setting is_active to false. The candle stays readable by ID."
)
def delete_candle(
    candle_id: str,
    db: Session = Depends(get_db)
):
    """Soft delete a candle."""
    service = CandleService(db)
    try:
        return service.remove(candle_id)
    except InvalidIdentifierError as e:
        raise _bad_request(e)
    except CandleNotFoundError as e:
        raise _not_found(e)
