from .sales_ledger import SalesLedgerService, build_ledger_rows

__all__ = ["SalesLedgerService", "build_ledger_rows"]
