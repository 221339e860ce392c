"""
Database models.

- LocalStateEntry: opaque key/value storage for session, history and settings
"""

from .base import Base
from .local_state import LocalStateEntry

__all__ = ["Base", "LocalStateEntry"]
