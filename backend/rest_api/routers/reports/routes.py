"""
Reports endpoints for sales analytics and statistics.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    DailyReportOutput,
    DashboardPeriodLiteral,
    DashboardStatsOutput,
    LedgerRowOutput,
    SalesDataPoint,
)
from rest_api.services.ledger import SalesLedgerService
from rest_api.services.reporting import ReportService

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/dashboard", response_model=DashboardStatsOutput)
def get_dashboard_stats(
    period: DashboardPeriodLiteral = "week",
    db: Session = Depends(get_db),
) -> DashboardStatsOutput:
    """KPIs for the last 7 or 30 business days compared with the window before."""
    return ReportService(db).get_dashboard_stats(period)


@router.get("/sales-by-product", response_model=list[SalesDataPoint])
def get_sales_by_product(
    start: datetime | None = None,
    end: datetime | None = None,
    db: Session = Depends(get_db),
) -> list[SalesDataPoint]:
    return ReportService(db).get_sales_by_product(start, end)


@router.get("/sales-history", response_model=list[LedgerRowOutput])
def get_sales_history(
    limit: int | None = Query(default=None, gt=0),
    db: Session = Depends(get_db),
) -> list[LedgerRowOutput]:
    return [
        LedgerRowOutput.model_validate(row)
        for row in ReportService(db).get_sales_history(limit)
    ]


@router.get("/daily", response_model=DailyReportOutput)
def get_daily_report(
    business_day_start: datetime | None = None,
    db: Session = Depends(get_db),
) -> DailyReportOutput:
    """End-of-day summary. Defaults to the current business day."""
    return ReportService(db).generate_daily_report(business_day_start)


@router.post("/ledger/{order_id}/regenerate", response_model=list[LedgerRowOutput])
def regenerate_ledger(order_id: int, db: Session = Depends(get_db)) -> list[LedgerRowOutput]:
    """Rebuild the ledger rows of a finalized order. Idempotent."""
    return [
        LedgerRowOutput.model_validate(row)
        for row in SalesLedgerService(db).regenerate_for_order(order_id)
    ]
