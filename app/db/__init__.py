"""Persistence layer: async engine, per-request sessions and the declarative base."""

from app.db.base import Base
from app.db.session import AsyncSessionLocal, close_db, engine, get_db, init_db

__all__ = ["Base", "AsyncSessionLocal", "engine", "get_db", "init_db", "close_db"]
