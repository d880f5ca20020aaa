"""
SQLAlchemy ORM models for persistent storage.

Local storage is a flat key-value table: one row per storage key holding
the JSON text of a collection record (or any legacy value).
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class StorageEntryDB(Base):
    """One key in the local durable store."""

    __tablename__ = "local_storage"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<StorageEntryDB(key={self.key}, size={len(self.value)})>"
