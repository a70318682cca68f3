"""Async engine, session factory and the request-scoped session dependency."""

from app.db.session import AsyncSessionLocal, engine, get_db

__all__ = ["AsyncSessionLocal", "engine", "get_db"]
