"""Routers module."""

from .admin import router as admin_router
from .auth import router as auth_router
from .cash_boxes import router as cash_boxes_router
from .receivables import router as receivables_router
from .stores import router as stores_router

__all__ = ["admin_router", "auth_router", "cash_boxes_router", "receivables_router", "stores_router"]
