"""Key-value operations with per-record TTL on top of kv_records."""

from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from hfmcp.db.models_kv import KeyValueEntity
from hfmcp.db.timeutil import is_past


async def kv_put(session: AsyncSession, key: str, value: str, ttl_seconds: int) -> None:
    """Insert or overwrite a record that expires after ttl_seconds."""
    expires_at = datetime.now(UTC) + timedelta(seconds=ttl_seconds)
    entity = await session.get(KeyValueEntity, key)
    if entity is None:
        session.add(KeyValueEntity(key=key, value=value, expires_at=expires_at))
    else:
        entity.value = value
        entity.expires_at = expires_at
    await session.flush()


async def kv_get(session: AsyncSession, key: str) -> str | None:
    """Return a live record's value; expired records are purged and hidden."""
    stmt = select(KeyValueEntity).where(KeyValueEntity.key == key)
    result = await session.execute(stmt)
    entity = result.scalar_one_or_none()
    if entity is None:
        return None
    if is_past(entity.expires_at):
        await kv_delete(session, key)
        return None
    return entity.value


async def kv_delete(session: AsyncSession, key: str) -> None:
    """Remove a record if present."""
    await session.execute(delete(KeyValueEntity).where(KeyValueEntity.key == key))
    await session.flush()
