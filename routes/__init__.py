"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.product_imports import router as product_imports_router

__all__ = [
    "product_imports_router",
]
