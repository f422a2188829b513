"""Persistence for products, price history and alerts.

The monitoring pipeline only talks to the :class:`Storage` contract; the
SQL and in-memory implementations are interchangeable.
"""

from .base import Storage
from .memory_storage import InMemoryStorage
from .sql_storage import SQLStorage
from .factory import create_storage

__all__ = [
    "Storage",
    "InMemoryStorage",
    "SQLStorage",
    "create_storage",
]
