from __future__ import annotations

from sqlalchemy import Column, Text

from ..db.session import Base


class StoredValue(Base):
    """One persisted key of application state, serialized as JSON text."""

    __tablename__ = "stored_values"

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
