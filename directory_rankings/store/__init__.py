"""Directory store adapters."""

from directory_rankings.store.directory_store import DirectoryStore
from directory_rankings.store.memory_store import InMemoryDirectoryStore
from directory_rankings.store.sqlite_store import SQLiteDirectoryStore

__all__ = ["DirectoryStore", "InMemoryDirectoryStore", "SQLiteDirectoryStore"]
