"""Database engine and session helpers."""

from pricewatch.db.session import create_engine, create_session_factory, create_tables

__all__ = ["create_engine", "create_session_factory", "create_tables"]
