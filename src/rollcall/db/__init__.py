"""Database layer."""

from rollcall.db.engine import Database
from rollcall.db.models import Base, EventRecord

__all__ = [
    "Base",
    "Database",
    "EventRecord",
]
