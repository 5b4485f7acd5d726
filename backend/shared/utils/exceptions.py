"""
Centralized HTTP exceptions for consistent error handling.

Every failure of the order engine falls into one distinguishable kind:

- ValidationError (400): rejected before any write, user-actionable.
- NotFoundError (404): the referenced entity does not exist.
- ConsistencyError (409): the current state forbids the transition.
- DependencyError (503): the store is unreachable or rejected the write.
- LedgerGenerationError (500): the sales ledger could not be written.

Usage:
    from shared.utils.exceptions import OrderNotFoundError, InvalidTransitionError

    raise OrderNotFoundError(order_id)
    raise InvalidTransitionError("Order", "not_sent", "ready")
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Product", 123)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: int | None = None, **log_context: Any):
        super().__init__("Order", order_id, **log_context)


class TableNotFoundError(NotFoundError):
    def __init__(self, table_id: int | None = None, **log_context: Any):
        super().__init__("Table", table_id, **log_context)


class IngredientNotFoundError(NotFoundError):
    def __init__(self, ingredient_id: int | None = None, **log_context: Any):
        super().__init__("Ingredient", ingredient_id, **log_context)


# =============================================================================
# 400 Validation Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400). Raised before any write.

    Usage:
        raise ValidationError("Quantity must be positive", field="quantity", value=-1)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            **log_context,
        )


class InvalidCoversError(ValidationError):
    """Seating requires a positive integer covers count."""

    def __init__(self, covers: Any, **log_context: Any):
        super().__init__(
            "A positive number of covers is required to open the table",
            covers=covers,
            **log_context,
        )


class EmptyOrderError(ValidationError):
    """The operation needs at least one order line."""

    def __init__(self, order_id: int | None = None, **log_context: Any):
        super().__init__("The order has no lines", order_id=order_id, **log_context)


class InvalidQuantityError(ValidationError):
    def __init__(self, quantity: Any, **log_context: Any):
        super().__init__(
            f"Quantity must be a positive number (got {quantity})",
            quantity=quantity,
            **log_context,
        )


# =============================================================================
# 409 Consistency Errors
# =============================================================================


class ConsistencyError(AppException):
    """
    The current state of the entity forbids the operation (409).

    Usage:
        raise ConsistencyError("The order was already sent to the kitchen", order_id=4)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            **log_context,
        )


class InvalidTransitionError(ConsistencyError):
    """Invalid status transition."""

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        detail = f"Invalid transition from '{from_status}' to '{to_status}' for {entity}"
        super().__init__(
            detail, entity=entity, from_status=from_status, to_status=to_status, **log_context
        )


class OrderAlreadyFinalizedError(ConsistencyError):
    def __init__(self, order_id: int, **log_context: Any):
        super().__init__(f"Order {order_id} is already finalized", order_id=order_id, **log_context)


class OrderAlreadySentError(ConsistencyError):
    """The order (or one of its lines) already left the waiting state."""

    def __init__(self, order_id: int, **log_context: Any):
        super().__init__(
            f"Order {order_id} was already sent to the kitchen",
            order_id=order_id,
            **log_context,
        )


class TableOccupiedError(ConsistencyError):
    def __init__(self, table_id: int, order_id: int | None = None, **log_context: Any):
        super().__init__(
            f"Table {table_id} is linked to order {order_id}",
            table_id=table_id,
            order_id=order_id,
            **log_context,
        )


class ConcurrentUpdateError(ConsistencyError):
    """Another transaction modified the order first (optimistic version check)."""

    def __init__(self, entity: str, entity_id: int | None = None, **log_context: Any):
        super().__init__(
            f"{entity} {entity_id} was modified concurrently, reload and retry",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


# =============================================================================
# 5xx Dependency / Internal Errors
# =============================================================================


class DependencyError(AppException):
    """
    The store (or another external dependency) failed (503).

    Propagated unchanged to the caller; nothing is retried internally.
    """

    def __init__(self, operation: str, retry_after: int | None = None, **log_context: Any):
        headers = {"Retry-After": str(retry_after)} if retry_after else None
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Storage failure during {operation}. Please retry.",
            log_level="error",
            headers=headers,
            operation=operation,
            **log_context,
        )


class LedgerGenerationError(AppException):
    """The sales ledger could not be written; the finalization is rolled back (500)."""

    def __init__(self, order_id: int, reason: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Sales ledger generation failed for order {order_id}: {reason}",
            log_level="error",
            order_id=order_id,
            **log_context,
        )
