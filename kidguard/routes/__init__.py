"""
API route modules.
"""

from .auth import router as auth_router, profile_router
from .admin import router as admin_router
from .guardian import router as guardian_router
from .pickup import router as pickup_router

__all__ = [
    "auth_router",
    "profile_router",
    "admin_router",
    "guardian_router",
    "pickup_router"
]
