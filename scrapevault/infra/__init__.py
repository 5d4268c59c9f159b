"""Infra layer utilities (SQLite record storage)."""

from .storage import RecordStore, SQLiteManager

__all__ = ["RecordStore", "SQLiteManager"]
