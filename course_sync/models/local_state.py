"""
Local state model.

Key/value rows holding the encrypted auth token, sync history and
settings as JSON text.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text

from .base import Base


class LocalStateEntry(Base):
    """Single stored value addressed by key."""

    __tablename__ = "local_state"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<LocalStateEntry {self.key}>"
