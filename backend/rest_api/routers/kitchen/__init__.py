"""
Kitchen routers - /api/kitchen/*
Kitchen display tickets.
"""

from .tickets import router

__all__ = ["router"]
