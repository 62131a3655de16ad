"""
Database access: connection pool lifecycle and repository queries.
"""

from .pool import set_db_pool, get_db_pool, get_db

__all__ = [
    "set_db_pool",
    "get_db_pool",
    "get_db",
]
