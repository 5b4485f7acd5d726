"""
Table Service.

Tables carry no stored status: every read derives it from the linked order.
Seating and releasing belong to OrderService because they create and close
orders.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import TableNotFoundError, TableOccupiedError
from shared.utils.schemas import TableCreate, TableOutput, TableUpdate
from rest_api.models import Table, derive_table_status

logger = get_logger(__name__)

__all__ = ["TableService", "derive_table_status"]


class TableService:
    """Service for dining-room table management."""

    def __init__(self, db: Session):
        self._db = db

    def _get(self, table_id: int) -> Table:
        table = self._db.scalar(
            select(Table).where(Table.id == table_id).options(selectinload(Table.order))
        )
        if table is None:
            raise TableNotFoundError(table_id)
        return table

    def get_table(self, table_id: int) -> TableOutput:
        return TableOutput.model_validate(self._get(table_id))

    def get_tables(self) -> list[TableOutput]:
        """All tables sorted by name, each with its derived status."""
        tables = self._db.scalars(
            select(Table).options(selectinload(Table.order)).order_by(Table.name, Table.id)
        ).all()
        return [TableOutput.model_validate(table) for table in tables]

    def create_table(self, data: TableCreate) -> TableOutput:
        table = Table(name=data.name, capacity=data.capacity)
        self._db.add(table)
        safe_commit(self._db, operation="create table")
        self._db.refresh(table)
        logger.info("Table created", table_id=table.id, name=table.name)
        return TableOutput.model_validate(table)

    def update_table(self, table_id: int, data: TableUpdate) -> TableOutput:
        table = self._get(table_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(table, field, value)
        safe_commit(self._db, operation="update table", table_id=table_id)
        logger.info("Table updated", table_id=table_id, fields=sorted(changes))
        return TableOutput.model_validate(table)

    def delete_table(self, table_id: int) -> None:
        """
        Delete a table.

        Raises:
            TableNotFoundError: unknown table
            TableOccupiedError: an order is still linked
        """
        table = self._get(table_id)
        if table.order_id is not None:
            raise TableOccupiedError(table_id, table.order_id)
        self._db.delete(table)
        safe_commit(self._db, operation="delete table", table_id=table_id)
        logger.info("Table deleted", table_id=table_id)
