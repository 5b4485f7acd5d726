"""
Centralized constants for the backend application.
Avoids magic strings for statuses, units and order types.

Usage:
    from shared.config.constants import KitchenStatus, OrderStatus

    if order.kitchen_status == KitchenStatus.NOT_SENT:
        ...
"""

from typing import Final


# =============================================================================
# Order lifecycle
# =============================================================================


class OrderType:
    """How the customer is served."""

    DINE_IN: Final[str] = "dine_in"
    TAKEAWAY: Final[str] = "takeaway"
    ONLINE: Final[str] = "online"

    ALL: Final[list[str]] = [DINE_IN, TAKEAWAY, ONLINE]
    # Orders without a table, handed over at the counter or delivered
    REMOTE: Final[list[str]] = [TAKEAWAY, ONLINE]


class OrderStatus:
    """Order status constants. One-way: pending_validation -> in_progress -> finalized."""

    PENDING_VALIDATION: Final[str] = "pending_validation"
    IN_PROGRESS: Final[str] = "in_progress"
    FINALIZED: Final[str] = "finalized"

    ALL: Final[list[str]] = [PENDING_VALIDATION, IN_PROGRESS, FINALIZED]
    OPEN: Final[list[str]] = [PENDING_VALIDATION, IN_PROGRESS]


class KitchenStatus:
    """Kitchen status constants. One-way: not_sent -> received -> ready -> served/delivered."""

    NOT_SENT: Final[str] = "not_sent"
    RECEIVED: Final[str] = "received"
    READY: Final[str] = "ready"
    SERVED: Final[str] = "served"
    DELIVERED: Final[str] = "delivered"

    ALL: Final[list[str]] = [NOT_SENT, RECEIVED, READY, SERVED, DELIVERED]
    HANDED_OVER: Final[list[str]] = [SERVED, DELIVERED]

    # Position in the one-way progression; served and delivered are both terminal
    RANK: Final[dict[str, int]] = {
        NOT_SENT: 0,
        RECEIVED: 1,
        READY: 2,
        SERVED: 3,
        DELIVERED: 3,
    }


class LineStatus:
    """Order line status constants."""

    WAITING: Final[str] = "waiting"
    SENT_TO_KITCHEN: Final[str] = "sent_to_kitchen"

    ALL: Final[list[str]] = [WAITING, SENT_TO_KITCHEN]


class TableStatus:
    """Derived table status. Never stored, always computed from the linked order."""

    FREE: Final[str] = "free"
    IN_KITCHEN: Final[str] = "in_kitchen"
    READY_TO_SERVE: Final[str] = "ready_to_serve"
    READY_TO_PAY: Final[str] = "ready_to_pay"

    ALL: Final[list[str]] = [FREE, IN_KITCHEN, READY_TO_SERVE, READY_TO_PAY]


class PaymentStatus:
    """Payment status constants."""

    UNPAID: Final[str] = "unpaid"
    PAID: Final[str] = "paid"


class PaymentMethod:
    """Payment method constants."""

    CASH: Final[str] = "cash"
    CARD: Final[str] = "card"
    TRANSFER: Final[str] = "transfer"

    ALL: Final[list[str]] = [CASH, CARD, TRANSFER]


# =============================================================================
# Inventory
# =============================================================================


class IngredientUnit:
    """
    Storage units of an ingredient.

    Stock and unit price are kept in the storage unit; recipes consume the
    matching fine usage unit (kg -> g, L -> ml, piece -> piece).
    """

    KILOGRAM: Final[str] = "kg"
    GRAM: Final[str] = "g"
    LITER: Final[str] = "L"
    MILLILITER: Final[str] = "ml"
    PIECE: Final[str] = "piece"

    ALL: Final[list[str]] = [KILOGRAM, GRAM, LITER, MILLILITER, PIECE]
    COARSE: Final[list[str]] = [KILOGRAM, LITER]


# =============================================================================
# Reporting
# =============================================================================


class DashboardPeriod:
    """Dashboard window lengths, in days."""

    WEEK: Final[str] = "week"
    MONTH: Final[str] = "month"

    DAYS: Final[dict[str, int]] = {WEEK: 7, MONTH: 30}
    LABELS: Final[dict[str, str]] = {WEEK: "Last 7 days", MONTH: "Last 30 days"}


UNCATEGORIZED_ID: Final[str] = "unknown"
UNCATEGORIZED_NAME: Final[str] = "Uncategorized"
OTHERS_BUCKET_NAME: Final[str] = "Others"
TOP_PRODUCTS_LIMIT: Final[int] = 6
RECENT_ORDERS_LIMIT: Final[int] = 5
BEST_SELLERS_LIMIT: Final[int] = 6
