"""Database models for the study tracker."""
from sqlalchemy import Column, String, Text

from studybook.models.base import Base, TimestampMixin


class KeyValueEntry(Base, TimestampMixin):
    """One persisted collection, stored as a JSON document under its key."""

    __tablename__ = "kv_entries"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
