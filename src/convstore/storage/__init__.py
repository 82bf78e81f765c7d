"""SQLite-backed storage for sessions and history."""

from convstore.storage.db import Database, open_database
from convstore.storage.history_store import HistoryStore
from convstore.storage.identity import IdentityResolver
from convstore.storage.session_store import SessionStore

__all__ = ["Database", "HistoryStore", "IdentityResolver", "SessionStore", "open_database"]
