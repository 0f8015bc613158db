"""
Routes package.
"""

from .catalog import router as catalog_router
from .preview import router as preview_router
from .sync import router as sync_router

__all__ = [
    "catalog_router",
    "preview_router",
    "sync_router",
]
