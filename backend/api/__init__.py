"""
API routers package - exports all FastAPI routers.
"""

from api.convert import router as convert_router

__all__ = ["convert_router"]
