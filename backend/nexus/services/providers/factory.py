from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from ...core.settings import (
    ENABLE_DUMMY_PROVIDER,
    GROQ_BASE_URL,
    MODEL_CACHE_TTL,
    OPENAI_BASE_URL,
)
from ...schemas import ModelDescriptor
from ..credentials import CredentialStore, is_valid_api_key_format
from .anthropic import AnthropicCatalogClient
from .base import CatalogClient, ProviderCatalogError
from .openai_compatible import OpenAICompatibleCatalogClient
from .openrouter import OpenRouterCatalogClient
from .static import DUMMY_PROVIDER, StaticCatalogClient, dummy_models

logger = logging.getLogger(__name__)


class ProviderFactory:
    """Registry of catalog clients keyed by provider name, with a per-provider model cache."""

    def __init__(
        self,
        credentials: CredentialStore,
        *,
        cache_ttl: float = MODEL_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._credentials = credentials
        self._clients: Dict[str, CatalogClient] = {}
        self._cache: Dict[str, Tuple[float, List[ModelDescriptor]]] = {}
        self._cache_ttl = cache_ttl
        self._clock = clock

    @property
    def provider_names(self) -> List[str]:
        return [client.provider_name for client in self._clients.values()]

    def register(self, client: CatalogClient) -> None:
        key = client.provider_name.lower()
        if key in self._clients:
            logger.info("Replacing catalog client for provider '%s'", client.provider_name)
        self._clients[key] = client
        self._cache.pop(key, None)

    def unregister(self, name: str) -> Optional[CatalogClient]:
        key = name.lower()
        self._cache.pop(key, None)
        return self._clients.pop(key, None)

    def get_client(self, name: str) -> Optional[CatalogClient]:
        if not name:
            return None
        return self._clients.get(name.strip().lower())

    def canonical_name(self, name: str) -> Optional[str]:
        client = self.get_client(name)
        return client.provider_name if client else None

    def clear_model_cache(self, provider: Optional[str] = None) -> None:
        if provider is None:
            self._cache.clear()
        else:
            self._cache.pop(provider.lower(), None)

    def _cached(self, key: str) -> Optional[List[ModelDescriptor]]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, models = entry
        if self._clock() - stored_at >= self._cache_ttl:
            self._cache.pop(key, None)
            return None
        return list(models)

    async def _fetch(self, client: CatalogClient) -> List[ModelDescriptor]:
        key = client.provider_name.lower()
        if not await self._credentials.has_active_api_key(client.provider_name):
            self._cache.pop(key, None)
            logger.debug("Skipping %s: no active API key", client.provider_name)
            return []

        cached = self._cached(key)
        if cached is not None:
            logger.debug("Serving %d cached models for %s", len(cached), client.provider_name)
            return cached

        api_key = await self._credentials.get_api_key(client.provider_name)
        if not is_valid_api_key_format(api_key):
            return []

        try:
            models = await client.list_models(api_key)
        except ProviderCatalogError as exc:
            logger.warning("Model discovery failed for %s: %s", client.provider_name, exc.message)
            return []
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error discovering models for %s", client.provider_name)
            return []

        self._cache[key] = (self._clock(), list(models))
        logger.info("Discovered %d models for %s", len(models), client.provider_name)
        return models

    async def get_all_models(self, timeout: Optional[float] = None) -> List[ModelDescriptor]:
        """Query every registered provider concurrently and merge the results.

        A provider that fails contributes nothing. With ``timeout``, providers
        still running at the deadline are cancelled and whatever already
        arrived is returned.
        """
        clients = list(self._clients.values())
        if not clients:
            return []

        tasks = [asyncio.create_task(self._fetch(client)) for client in clients]
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            abandoned = [client.provider_name for client, task in zip(clients, tasks) if task in pending]
            logger.warning("Model discovery timed out for: %s", ", ".join(abandoned))

        merged: List[ModelDescriptor] = []
        seen = set()
        for task in tasks:
            if task not in done:
                continue
            for model in task.result():
                if model.natural_key in seen:
                    continue
                seen.add(model.natural_key)
                merged.append(model)
        return merged

    async def get_provider_models(
        self, name: str, timeout: Optional[float] = None
    ) -> List[ModelDescriptor]:
        client = self.get_client(name)
        if client is None:
            logger.warning("No catalog client registered for provider '%s'", name)
            return []
        try:
            return await asyncio.wait_for(self._fetch(client), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Model discovery timed out for %s", client.provider_name)
            return []

    async def aclose(self) -> None:
        for client in self._clients.values():
            try:
                await client.aclose()
            except Exception:  # noqa: BLE001
                logger.warning("Failed to close client for %s", client.provider_name, exc_info=True)


def build_default_factory(
    credentials: CredentialStore, *, enable_dummy: bool = ENABLE_DUMMY_PROVIDER
) -> ProviderFactory:
    factory = ProviderFactory(credentials)
    factory.register(OpenAICompatibleCatalogClient("OpenAI", OPENAI_BASE_URL))
    factory.register(AnthropicCatalogClient())
    factory.register(OpenAICompatibleCatalogClient("Groq", GROQ_BASE_URL))
    factory.register(OpenRouterCatalogClient())
    if enable_dummy:
        factory.register(StaticCatalogClient(DUMMY_PROVIDER, dummy_models()))
    return factory


__all__ = ["ProviderFactory", "build_default_factory"]
