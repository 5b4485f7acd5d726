"""
SQLAlchemy ORM Models Package.

All models are organized into domain-specific modules:
- base: Base class and TimestampMixin
- table: Table (derived status), derive_table_status
- order: Order, OrderLine
- catalog: Category, Product, RecipeLine
- ingredient: Ingredient, IngredientPurchase
- ledger: SalesLedgerRow
"""

# Base classes
from .base import Base, TimestampMixin

# Dining room
from .table import Table, derive_table_status

# Orders
from .order import Order, OrderLine

# Catalog (menu structure and recipes)
from .catalog import Category, Product, RecipeLine

# Inventory
from .ingredient import Ingredient, IngredientPurchase

# Sales ledger
from .ledger import SalesLedgerRow

__all__ = [
    "Base",
    "TimestampMixin",
    "Table",
    "derive_table_status",
    "Order",
    "OrderLine",
    "Category",
    "Product",
    "RecipeLine",
    "Ingredient",
    "IngredientPurchase",
    "SalesLedgerRow",
]
