"""SQLAlchemy model for the TTL'd key-value table."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hfmcp.db.base import BaseEntity


class KeyValueEntity(BaseEntity):
    """Opaque value stored under a single key until expires_at."""

    __tablename__ = "kv_records"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
