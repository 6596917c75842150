from sqlalchemy.orm import Session
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from typing import List
import logging
import math
import numbers

from app.models.candle import MAX_STOCK, Candle, is_valid_candle_id, new_candle_id
from app.schemas.candle import CandleCreate, CandleUpdate

logger = logging.getLogger(__name__)


class CandleServiceError(Exception):
    """Base class for errors raised by the candle service."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class InvalidIdentifierError(CandleServiceError):
    """Exception raised when a candle ID is not well formed."""

    def __init__(self, candle_id):
        self.candle_id = candle_id
        super().__init__("Invalid candle ID format")


class CandleNotFoundError(CandleServiceError):
    """Exception raised when the requested candle doesn't exist."""

    def __init__(self, candle_id: str):
        self.candle_id = candle_id
        super().__init__(f"Candle with ID {candle_id} not found")


class InvalidQuantityError(CandleServiceError):
    """Exception raised when a stock quantity is not a usable number."""
    pass


class InsufficientStockError(CandleServiceError):
    """Exception raised when a stock change would take stock below zero."""

    def __init__(self, current_stock: int, requested_change: int):
        self.current_stock = current_stock
        self.requested_change = requested_change
        super().__init__(
            f"Insufficient stock. Current stock: {current_stock}, "
            f"requested change: {requested_change}. Cannot reduce stock below zero."
        )


class CandleService:
    """
    Service class for Candle inventory operations.

    This is the only place where candle records are read or written, and
    the only place the non-negative stock invariant is enforced:
    - Creating candles
    - Listing active candles, optionally by scent
    - Reading candles by ID (soft-deleted ones included)
    - Partial updates
    - Soft deletion
    - Relative stock adjustments

    STOCK ADJUSTMENT STRATEGY:
    ==========================
    The current record is read first so callers get a descriptive error
    when the change is obviously impossible. The write itself is a single
    conditional UPDATE:

        UPDATE candles SET stock = stock + :delta
        WHERE id = :id AND stock >= -:delta AND stock <= :max_stock - :delta

    so concurrent adjustments of the same candle never lose updates and
    can never leave stock negative or beyond the column range. If the
    UPDATE matches no row, the candle was either removed or its stock
    changed after the read.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(self, candle_data: CandleCreate) -> Candle:
        """
        Create a new active candle.

        Args:
            candle_data: Candle creation data

        Returns:
            Created candle instance with ID and timestamps

        Raises:
            InvalidQuantityError: If the initial stock is out of range
        """
        self._check_stock(candle_data.stock)

        candle = Candle(
            id=new_candle_id(),
            name=candle_data.name,
            description=candle_data.description,
            price=candle_data.price,
            stock=candle_data.stock,
            scent=candle_data.scent,
            size=candle_data.size,
            tags=list(candle_data.tags),
            is_active=True,
        )
        self._commit(candle)
        self.db.refresh(candle)

        logger.info(f"Candle {candle.id} created with stock {candle.stock}")
        return candle

    def list_active(self) -> List[Candle]:
        """Get all candles that have not been soft-deleted."""
        return self.db.query(Candle).filter(Candle.is_active.is_(True)).all()

    def list_by_scent(self, scent: str) -> List[Candle]:
        """
        Get active candles whose scent contains the given text.

        Matching is case-insensitive and literal: wildcard characters in
        the search text are matched as themselves.

        Args:
            scent: Text to look for in the scent field

        Returns:
            List of matching candles, empty if nothing matches
        """
        escaped = scent.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return (
            self.db.query(Candle)
            .filter(Candle.is_active.is_(True))
            .filter(Candle.scent.ilike(f"%{escaped}%", escape="\\"))
            .all()
        )

    def get_by_id(self, candle_id: str) -> Candle:
        """
        Get a candle by ID, whether active or not.

        Args:
            candle_id: Candle ID to look up

        Returns:
            Candle instance

        Raises:
            InvalidIdentifierError: If the ID is malformed
            CandleNotFoundError: If no candle has this ID
        """
        candle_id = self._normalize_id(candle_id)
        candle = self.db.get(Candle, candle_id)
        if candle is None:
            raise CandleNotFoundError(candle_id)
        return candle

    def update(self, candle_id: str, candle_data: CandleUpdate) -> Candle:
        """
        Update an existing candle.

        Provided fields overwrite the stored values entirely (tags are
        replaced, not appended); omitted fields keep their values.

        Args:
            candle_id: ID of candle to update
            candle_data: Update data (only provided, non-None fields are applied)

        Returns:
            Updated candle

        Raises:
            InvalidIdentifierError: If the ID is malformed
            CandleNotFoundError: If no candle has this ID
            InvalidQuantityError: If the patch sets an out-of-range stock
        """
        candle = self.get_by_id(candle_id)

        update_data = {
            field: value
            for field, value in candle_data.model_dump(exclude_unset=True).items()
            if value is not None
        }
        if "stock" in update_data:
            self._check_stock(update_data["stock"])

        for field, value in update_data.items():
            setattr(candle, field, value)
        # Bumped even when nothing else changed
        candle.updated_at = func.now()

        self._commit(candle)
        self.db.refresh(candle)
        return candle

    def remove(self, candle_id: str) -> Candle:
        """
        Soft delete a candle by marking it inactive.

        Removing an already inactive candle succeeds; only updated_at moves.

        Raises:
            InvalidIdentifierError: If the ID is malformed
            CandleNotFoundError: If no candle has this ID
        """
        candle = self.get_by_id(candle_id)
        candle.is_active = False
        candle.updated_at = func.now()

        self._commit(candle)
        self.db.refresh(candle)

        logger.info(f"Candle {candle.id} deactivated")
        return candle

    def adjust_stock(self, candle_id: str, quantity) -> Candle:
        """
        Add a signed quantity to a candle's stock.

        Algorithm:
        1. Validate the ID and the quantity
        2. Read the current candle
        3. Refuse the change if current stock + quantity < 0
        4. Apply the increment with a conditional UPDATE
        5. If no row was updated, re-read to report why

        Args:
            candle_id: ID of the candle
            quantity: Positive to restock, negative to consume

        Returns:
            Candle with the new stock

        Raises:
            InvalidIdentifierError: If the ID is malformed
            InvalidQuantityError: If quantity is not a finite whole number, or the
                result would exceed the stock column range
            CandleNotFoundError: If the candle doesn't exist (or vanished mid-way)
            InsufficientStockError: If stock would go below zero
        """
        candle_id = self._normalize_id(candle_id)
        delta = self._validate_quantity(quantity)

        candle = self.get_by_id(candle_id)
        if candle.stock + delta < 0:
            logger.warning(
                f"Refused stock change of {delta} for candle {candle_id} (stock {candle.stock})"
            )
            raise InsufficientStockError(candle.stock, delta)
        if candle.stock + delta > MAX_STOCK:
            raise InvalidQuantityError(f"Stock cannot exceed {MAX_STOCK}")

        try:
            # Bounds are computed here so the WHERE clause itself cannot overflow
            result = self.db.execute(
                update(Candle)
                .where(
                    Candle.id == candle_id,
                    Candle.stock >= -delta,
                    Candle.stock <= MAX_STOCK - delta,
                )
                .values(stock=Candle.stock + delta, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                self.db.rollback()
                current = self.db.get(Candle, candle_id)
                if current is None:
                    raise CandleNotFoundError(candle_id)
                logger.warning(
                    f"Concurrent stock change detected for candle {candle_id} (stock {current.stock})"
                )
                if current.stock + delta > MAX_STOCK:
                    raise InvalidQuantityError(f"Stock cannot exceed {MAX_STOCK}")
                raise InsufficientStockError(current.stock, delta)

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error adjusting stock for candle {candle_id}: {e}")
            raise

        candle = self.db.get(Candle, candle_id)
        if candle is None:
            raise CandleNotFoundError(candle_id)

        logger.info(f"Candle {candle_id} stock changed by {delta} to {candle.stock}")
        return candle

    def _normalize_id(self, candle_id) -> str:
        """Validate an ID before any database access."""
        if not is_valid_candle_id(candle_id):
            raise InvalidIdentifierError(candle_id)
        return candle_id.lower()

    def _validate_quantity(self, quantity) -> int:
        """Accept finite whole numbers only; bools are not quantities."""
        if isinstance(quantity, bool) or not isinstance(quantity, numbers.Real):
            raise InvalidQuantityError("Quantity must be a valid number")
        if not math.isfinite(quantity):
            raise InvalidQuantityError("Quantity must be a valid number")
        if abs(quantity) > MAX_STOCK:
            raise InvalidQuantityError(f"Quantity must be between -{MAX_STOCK} and {MAX_STOCK}")
        if quantity != int(quantity):
            raise InvalidQuantityError("Quantity must be a whole number")
        return int(quantity)

    def _check_stock(self, stock: int) -> None:
        if not 0 <= stock <= MAX_STOCK:
            raise InvalidQuantityError(f"Stock must be between 0 and {MAX_STOCK}")

    def _commit(self, candle: Candle) -> None:
        """Persist pending changes, rolling back on database errors."""
        try:
            self.db.add(candle)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving candle {candle.id}: {e}")
            raise
