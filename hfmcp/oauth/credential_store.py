"""Encrypted, TTL'd storage of HappyFox credentials keyed by grant id."""

import logging
import time

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from hfmcp.core.settings import CREDENTIAL_TTL_DEFAULT
from hfmcp.crypto.cipher import CredentialCipher, DecryptionError
from hfmcp.db.repo_kv import kv_delete, kv_get, kv_put
from hfmcp.oauth.types import GrantCredentials

logger = logging.getLogger(__name__)

CREDENTIAL_KEY_PREFIX = "cred:"
MIN_RECORD_TTL_SECONDS = 60


def credential_key(grant_id: str) -> str:
    return f"{CREDENTIAL_KEY_PREFIX}{grant_id}"


class CredentialStore:
    """Stores one encrypted credential bundle per grant id.

    There is intentionally no listing operation. Expiry is enforced lazily on
    read, on top of the record TTL.
    """

    def __init__(
        self,
        session: AsyncSession,
        cipher: CredentialCipher,
        credential_ttl: int = CREDENTIAL_TTL_DEFAULT,
    ) -> None:
        self._session = session
        self._cipher = cipher
        self._credential_ttl = credential_ttl

    async def store(self, grant_id: str, credentials: GrantCredentials) -> None:
        """Encrypt and write credentials with a TTL of at least one minute."""
        envelope = self._cipher.encrypt(credentials.model_dump_json())
        ttl = max(MIN_RECORD_TTL_SECONDS, credentials.expires_at - int(time.time()))
        await kv_put(self._session, credential_key(grant_id), envelope, ttl)

    async def retrieve(self, grant_id: str) -> GrantCredentials | None:
        """Return live credentials, deleting unreadable or expired records."""
        envelope = await kv_get(self._session, credential_key(grant_id))
        if envelope is None:
            return None

        try:
            plaintext = self._cipher.decrypt(envelope)
            credentials = GrantCredentials.model_validate_json(plaintext)
        except (DecryptionError, ValidationError) as exc:
            logger.warning("Discarding unreadable credentials for a grant: %s", exc)
            await self.delete(grant_id)
            return None

        if credentials.expires_at < int(time.time()):
            await self.delete(grant_id)
            return None
        return credentials

    async def delete(self, grant_id: str) -> None:
        await kv_delete(self._session, credential_key(grant_id))

    async def renew(self, grant_id: str) -> bool:
        """Push expiry out by the full credential TTL. False if nothing live."""
        credentials = await self.retrieve(grant_id)
        if credentials is None:
            return False
        renewed = credentials.model_copy(
            update={"expires_at": int(time.time()) + self._credential_ttl}
        )
        await self.store(grant_id, renewed)
        return True
