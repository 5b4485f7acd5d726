"""
Inventory router - /api/ingredients/*
"""

from .ingredients import router

__all__ = ["router"]
