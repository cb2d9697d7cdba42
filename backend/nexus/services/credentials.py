"""Provider API key storage.

Keys are resolved from the ``provider_credentials`` table first and from
``AI_KEY_<PROVIDER>`` environment variables second. Stored keys are
encrypted with Fernet when ``NEXUS_API_KEY_ENCRYPTION_KEY`` is configured.
"""

from __future__ import annotations

import inspect
import logging
import os
import re
from datetime import datetime
from typing import Awaitable, Callable, Iterable, List, Mapping, Optional, Union

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.settings import API_KEY_ENCRYPTION_KEY, API_KEY_ENV_PREFIX
from ..models import ProviderCredential

logger = logging.getLogger(__name__)

_KEY_PATTERNS = (
    re.compile(r"^sk-[A-Za-z0-9]{24,}$"),
    re.compile(r"^gsk_[A-Za-z0-9]{16,}$"),
    re.compile(r"^sk-or-[A-Za-z0-9-]{20,}$"),
    re.compile(r"^[A-Za-z0-9_\-]{16,}$"),
)

CredentialListener = Callable[[str], Union[None, Awaitable[None]]]


def is_valid_api_key_format(api_key: Optional[str]) -> bool:
    if not api_key or not api_key.strip():
        return False
    if len(api_key) < 8:
        return False
    return any(pattern.match(api_key) for pattern in _KEY_PATTERNS)


def env_var_name(provider: str) -> str:
    return f"{API_KEY_ENV_PREFIX}{provider.strip().upper()}"


def _normalise(provider: str) -> str:
    return provider.strip().lower()


class CredentialStore:
    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        encryption_key: Optional[str] = API_KEY_ENCRYPTION_KEY,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._session_factory = session_factory
        self._cipher = Fernet(encryption_key.encode()) if encryption_key else None
        if self._cipher is None:
            logger.warning(
                "NEXUS_API_KEY_ENCRYPTION_KEY not set; API keys will be stored in plain text."
            )
        self._environ = environ if environ is not None else os.environ
        self._listeners: List[CredentialListener] = []

    def _encrypt(self, api_key: str) -> str:
        if self._cipher:
            return self._cipher.encrypt(api_key.encode()).decode()
        return api_key

    def _decrypt(self, stored: str) -> Optional[str]:
        if not self._cipher:
            return stored
        try:
            return self._cipher.decrypt(stored.encode()).decode()
        except InvalidToken:
            logger.warning("Stored API key could not be decrypted with the configured key")
            return None

    def _env_api_key(self, provider: str) -> Optional[str]:
        value = self._environ.get(env_var_name(provider))
        if value and value.strip():
            return value.strip()
        return None

    async def _stored_api_key(self, provider: str, *, touch: bool) -> Optional[str]:
        async with self._session_factory() as session:
            record = await session.get(ProviderCredential, _normalise(provider))
            if record is None:
                return None
            api_key = self._decrypt(record.api_key)
            if api_key is not None and touch:
                record.use_count = (record.use_count or 0) + 1
                record.last_used_at = datetime.utcnow()
                try:
                    await session.commit()
                except SQLAlchemyError:
                    await session.rollback()
                    logger.warning(
                        "Failed to record key usage for provider '%s'", provider, exc_info=True
                    )
            return api_key

    async def get_api_key(self, provider: str, *, record_use: bool = True) -> Optional[str]:
        if not provider or not provider.strip():
            return None
        try:
            stored = await self._stored_api_key(provider, touch=record_use)
        except SQLAlchemyError:
            logger.warning("Failed to read stored API key for '%s'", provider, exc_info=True)
            stored = None
        if stored:
            return stored
        return self._env_api_key(provider)

    async def has_active_api_key(self, provider: str) -> bool:
        if not provider or not provider.strip():
            return False
        try:
            api_key = await self._stored_api_key(provider, touch=False)
        except SQLAlchemyError:
            logger.warning("Failed to read stored API key for '%s'", provider, exc_info=True)
            api_key = None
        if not api_key:
            api_key = self._env_api_key(provider)
        return is_valid_api_key_format(api_key)

    async def get_active_providers(self, known: Iterable[str]) -> List[str]:
        return [name for name in known if await self.has_active_api_key(name)]

    async def key_source(self, provider: str) -> Optional[str]:
        try:
            async with self._session_factory() as session:
                record = await session.get(ProviderCredential, _normalise(provider))
        except SQLAlchemyError:
            logger.warning("Failed to read stored API key for '%s'", provider, exc_info=True)
            record = None
        if record is not None:
            return "stored"
        if self._env_api_key(provider):
            return "environment"
        return None

    async def save_provider_api_key(self, provider: str, api_key: str) -> bool:
        if not provider or not provider.strip():
            return False
        api_key = (api_key or "").strip()
        if not is_valid_api_key_format(api_key):
            logger.warning("Rejected API key with invalid format for provider '%s'", provider)
            return False

        key = _normalise(provider)
        try:
            async with self._session_factory() as session:
                record = await session.get(ProviderCredential, key)
                if record is None:
                    session.add(ProviderCredential(provider=key, api_key=self._encrypt(api_key)))
                else:
                    record.api_key = self._encrypt(api_key)
                await session.commit()
        except SQLAlchemyError:
            logger.exception("Failed to save API key for provider '%s'", provider)
            return False

        logger.info("Saved API key for provider '%s'", provider)
        await self._notify(provider)
        return True

    async def delete_provider_api_key(self, provider: str) -> bool:
        if not provider or not provider.strip():
            return False
        try:
            async with self._session_factory() as session:
                record = await session.get(ProviderCredential, _normalise(provider))
                if record is None:
                    return False
                await session.delete(record)
                await session.commit()
        except SQLAlchemyError:
            logger.exception("Failed to delete API key for provider '%s'", provider)
            return False

        logger.info("Deleted stored API key for provider '%s'", provider)
        await self._notify(provider)
        return True

    def on_change(self, callback: CredentialListener) -> None:
        self._listeners.append(callback)

    async def _notify(self, provider: str) -> None:
        for callback in list(self._listeners):
            try:
                result = callback(provider)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                logger.exception("Credential listener failed for provider '%s'", provider)


__all__ = [
    "CredentialStore",
    "env_var_name",
    "is_valid_api_key_format",
]
