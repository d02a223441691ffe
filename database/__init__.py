"""
Competition Dashboard Database Package
SQLite store, change feed and legacy data import
"""

from .schema import COLLECTIONS, DatabaseManager, new_record_id
from .changes import ChangeFeed, TeamProjection
from .migration import DataMigration

__all__ = ['COLLECTIONS', 'DatabaseManager', 'new_record_id', 'ChangeFeed', 'TeamProjection', 'DataMigration']
