"""API routes"""
from .entries import router as entries_router
from .categories import router as categories_router
from .stats import router as stats_router

__all__ = ["entries_router", "categories_router", "stats_router"]
