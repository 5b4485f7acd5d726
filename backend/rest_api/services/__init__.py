"""
Services module for business logic.

STRUCTURE:
- domain/: Application services used by the routers
  (OrderService, TableService, IngredientService)
- finance/: Financial snapshot, promotions, recipe costing
- inventory/: Unit conversion and stock deduction
- ledger/: Sales ledger generation
- reporting/: Dashboard, sales and daily reports
- events/: Change notifications

Usage:
    from rest_api.services.domain import OrderService
    service = OrderService(db, notifier)
    order = service.seat_table(table_id, covers=4)

Submodules are imported by path; this package does not re-export them.
"""
