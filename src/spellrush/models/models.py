"""Database models for the game."""
from sqlalchemy import Column, String, Text

from spellrush.models.base import Base, TimestampMixin


class StoredValue(Base, TimestampMixin):
    """One entry of the key-value store; values are JSON documents."""

    __tablename__ = "stored_values"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
