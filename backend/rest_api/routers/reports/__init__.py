"""
Reports router - /api/reports/*
Dashboard, sales and daily reports, sales ledger maintenance.
"""

from .routes import router

__all__ = ["router"]
