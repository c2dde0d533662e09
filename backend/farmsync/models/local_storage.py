from sqlalchemy import Column, String, Text
from .base import Base, TimestampMixin


class LocalStorageEntry(Base, TimestampMixin):
    """Device-local key/value record. Keys are namespaced by prefix (e.g. ``farm_pending_``)."""
    __tablename__ = "local_storage"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)  # JSON-encoded
