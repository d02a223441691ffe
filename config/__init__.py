"""
Competition Dashboard Configuration Package
Settings and logging setup shared by the app and the maintenance scripts
"""

from .settings import AppSettings, settings
from .logging_setup import setup_logging

__all__ = ['AppSettings', 'settings', 'setup_logging']
