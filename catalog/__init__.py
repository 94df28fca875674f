"""catalog package"""
from .json_store import JSONCatalog
from .sqlite_store import SQLiteStore

__all__ = ["JSONCatalog", "SQLiteStore"]
