"""Database access for the mentor core."""

from .connection import close_engine, create_engine_for_url, create_tables, get_engine, get_session_factory

__all__ = [
    "close_engine",
    "create_engine_for_url",
    "create_tables",
    "get_engine",
    "get_session_factory",
]
