"""Per-account cache for HappyFox reference data."""

import logging
from typing import Any

from hfmcp.core.cache import TTLCache
from hfmcp.core.settings import REFERENCE_CACHE_TTL_DEFAULT

logger = logging.getLogger(__name__)


class ReferenceCache:
    """Reference data keyed by region, account and resource name.

    Region is part of the key so US and EU accounts with the same subdomain
    never share entries.
    """

    def __init__(self, cache: TTLCache[Any] | None = None) -> None:
        if cache is None:
            cache = TTLCache(REFERENCE_CACHE_TTL_DEFAULT)
        self._cache: TTLCache[Any] = cache

    @staticmethod
    def _key(account_name: str, region: str, resource: str) -> str:
        return f"{region}/{account_name}/{resource}"

    def get(self, account_name: str, region: str, resource: str) -> Any | None:
        value = self._cache.get(self._key(account_name, region, resource))
        if value is not None:
            logger.debug("Reference cache hit for %s (%s)", resource, region)
        return value

    def set(self, account_name: str, region: str, resource: str, value: Any) -> None:
        self._cache.set(self._key(account_name, region, resource), value)

    def invalidate(self, account_name: str, region: str, resource: str) -> None:
        self._cache.invalidate(self._key(account_name, region, resource))
