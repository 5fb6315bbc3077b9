"""Routers package for the front desk API."""

from .console import router as console_router

__all__ = [
    "console_router",
]
