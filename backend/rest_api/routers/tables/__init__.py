"""
Tables router - /api/tables/*
Dining-room table management and seating.
"""

from .routes import router

__all__ = ["router"]
