"""Database module."""

from db.session import async_session, close_db, configure_engine, get_db, init_db

__all__ = ["async_session", "configure_engine", "get_db", "init_db", "close_db"]
