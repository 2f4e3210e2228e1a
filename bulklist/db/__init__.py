"""Listing store database access."""

from .connection import get_db_context, get_engine, init_db, make_engine

__all__ = [
    "get_db_context",
    "get_engine",
    "init_db",
    "make_engine",
]
