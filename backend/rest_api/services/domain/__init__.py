"""
Domain Services - Application Layer.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Model (entity)

Usage:
    from rest_api.services.domain import OrderService

    # In router
    service = OrderService(db, notifier)
    order = service.send_to_kitchen(order_id)
"""

from .table_service import TableService
from .order_service import OrderService
from .ingredient_service import IngredientService

__all__ = [
    "TableService",
    "OrderService",
    "IngredientService",
]
