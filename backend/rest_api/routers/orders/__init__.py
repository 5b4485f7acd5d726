"""
Orders router - /api/orders/*
Order lines, kitchen transitions, takeaway checkout and finalization.
"""

from .routes import router

__all__ = ["router"]
