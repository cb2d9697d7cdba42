"""Current-model state, discovery orchestration and change notification."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, List, Optional, Set, Tuple, Union

from ..core.settings import AUTO_SELECT_MODEL, DISCOVERY_TIMEOUT
from ..db.session import AsyncSessionLocal
from ..models import AIModel
from ..schemas import AIModelRead, ModelDescriptor
from .converters import ai_model_to_read, model_to_descriptor
from .credentials import CredentialStore
from .model_repository import ModelRepository
from .providers import ProviderFactory, build_default_factory
from .providers.heuristics import display_name_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentModelChanged:
    old: Optional[AIModelRead]
    new: Optional[AIModelRead]


ModelChangeCallback = Callable[[CurrentModelChanged], None]
ModelLike = Union[ModelDescriptor, AIModel]


def _same_model(model: Optional[AIModelRead], provider: str, model_name: str) -> bool:
    return (
        model is not None
        and model.provider_name.lower() == provider.strip().lower()
        and model.model_name == model_name
    )


class ModelManager:
    def __init__(
        self,
        credentials: CredentialStore,
        repository: ModelRepository,
        factory: ProviderFactory,
        *,
        auto_select: bool = AUTO_SELECT_MODEL,
        discovery_timeout: Optional[float] = DISCOVERY_TIMEOUT,
    ) -> None:
        self.credentials = credentials
        self.repository = repository
        self.factory = factory
        self._auto_select = auto_select
        self._discovery_timeout = discovery_timeout

        self._current: Optional[AIModelRead] = None
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._selection_lock = asyncio.Lock()
        self._active_cache: Optional[List[AIModelRead]] = None
        self._subscribers: List[Tuple[ModelChangeCallback, Optional[asyncio.AbstractEventLoop]]] = []
        self._background: Set[asyncio.Task] = set()

        credentials.on_change(self._on_credentials_changed)

    @property
    def current_model(self) -> Optional[AIModelRead]:
        return self._current

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # Observers

    def subscribe(
        self,
        callback: ModelChangeCallback,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """Register ``callback`` for current-model changes.

        Callbacks run in registration order. When ``loop`` is given the call
        is scheduled on that loop instead of running inline.
        """
        self._subscribers.append((callback, loop))

    def unsubscribe(self, callback: ModelChangeCallback) -> None:
        self._subscribers = [entry for entry in self._subscribers if entry[0] != callback]

    @staticmethod
    def _deliver(callback: ModelChangeCallback, event: CurrentModelChanged) -> None:
        try:
            callback(event)
        except Exception:  # noqa: BLE001
            logger.exception("Current-model subscriber %r failed", callback)

    def _notify(self, event: CurrentModelChanged) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        for callback, loop in list(self._subscribers):
            if loop is None or loop is running:
                self._deliver(callback, event)
            else:
                loop.call_soon_threadsafe(self._deliver, callback, event)

    # Lifecycle

    async def initialize(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return
            selected = await self.repository.get_selected_model()
            if selected is not None:
                self._current = ai_model_to_read(selected)
                logger.info("Restored current model %s/%s", selected.provider_name, selected.model_name)
            elif self._auto_select:
                await self.ensure_current_model()
            self._initialized = True

    async def ensure_current_model(self) -> Optional[AIModelRead]:
        """Select the first provider default, else the first active model, if nothing is selected."""
        if self._current is not None:
            return self._current
        active = await self.get_active_models()
        candidate = next((model for model in active if model.is_default), None)
        if candidate is None and active:
            candidate = active[0]
        if candidate is None:
            return None
        logger.info(
            "No model selected; selecting %s/%s", candidate.provider_name, candidate.model_name
        )
        await self.set_current_model(candidate)
        return self._current

    async def aclose(self) -> None:
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        await self.factory.aclose()

    # Discovery

    async def discover_and_load_models(self, timeout: Optional[float] = None) -> bool:
        timeout = self._discovery_timeout if timeout is None else timeout
        try:
            descriptors = await self.factory.get_all_models(timeout=timeout)
        except Exception:  # noqa: BLE001
            logger.exception("Model discovery failed")
            return False
        return await self.process_discovered_models(descriptors)

    async def discover_and_load_provider_models(
        self, provider: str, timeout: Optional[float] = None
    ) -> bool:
        timeout = self._discovery_timeout if timeout is None else timeout
        self.factory.clear_model_cache(provider)
        try:
            descriptors = await self.factory.get_provider_models(provider, timeout=timeout)
        except Exception:  # noqa: BLE001
            logger.exception("Model discovery failed for provider '%s'", provider)
            return False
        return await self.process_discovered_models(descriptors)

    async def process_discovered_models(self, descriptors: List[ModelDescriptor]) -> bool:
        if not descriptors:
            return False
        result = await self.repository.upsert_descriptors(descriptors)
        if result.inserted or result.updated:
            self.refresh_model_cache()
            await self._reload_current()
        return result.any_new

    # Selection and user state

    async def set_current_model(self, model: ModelLike) -> bool:
        descriptor = model_to_descriptor(model)
        async with self._selection_lock:
            row = await self.repository.get_model_by_name(
                descriptor.provider_name, descriptor.model_name
            )
            if row is None:
                canonical = self.factory.canonical_name(descriptor.provider_name)
                if canonical and canonical != descriptor.provider_name:
                    descriptor = descriptor.model_copy(update={"provider_name": canonical})
                row = await self.repository.add(descriptor)
                if row is None:
                    logger.warning(
                        "Cannot select unknown model %s/%s",
                        descriptor.provider_name,
                        descriptor.model_name,
                    )
                    return False
                self.refresh_model_cache()

            if not await self.repository.set_selected(row.id):
                return False
            await self.repository.record_usage(row.provider_name, row.model_name)
            refreshed = await self.repository.get_by_id(row.id)

            old = self._current
            self._current = ai_model_to_read(refreshed or row)
            self.refresh_model_cache()
            logger.info("Current model is now %s/%s", row.provider_name, row.model_name)
            self._notify(CurrentModelChanged(old=old, new=self._current))
        return True

    async def clear_current_model(self) -> bool:
        async with self._selection_lock:
            if not await self.repository.clear_selected():
                return False
            old = self._current
            self._current = None
            self.refresh_model_cache()
            if old is not None:
                self._notify(CurrentModelChanged(old=old, new=None))
        return True

    async def set_default_model(self, provider: str, model_name: str) -> bool:
        if not await self.repository.set_default(provider, model_name):
            return False
        self.refresh_model_cache()
        await self._reload_current()
        return True

    async def set_favorite_status(self, provider: str, model_name: str, value: bool) -> bool:
        row = await self.repository.get_model_by_name(provider, model_name)
        if row is None:
            canonical = self.factory.canonical_name(provider) or provider.strip()
            row = await self.repository.add(
                ModelDescriptor(
                    provider_name=canonical,
                    model_name=model_name,
                    display_name=display_name_for(model_name),
                )
            )
            if row is None:
                return False
        if not await self.repository.set_favorite(row.provider_name, row.model_name, value):
            return False
        self.refresh_model_cache()
        if _same_model(self._current, row.provider_name, row.model_name):
            self._current = self._current.model_copy(update={"is_favorite": value})
        return True

    async def record_model_usage(self, provider: str, model_name: str) -> bool:
        try:
            recorded = await self.repository.record_usage(provider, model_name)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to record usage for %s/%s", provider, model_name)
            return False
        if recorded and _same_model(self._current, provider, model_name):
            await self._reload_current()
        return recorded

    def record_model_usage_nowait(self, provider: str, model_name: str) -> asyncio.Task:
        task = asyncio.create_task(self.record_model_usage(provider, model_name))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _reload_current(self) -> None:
        if self._current is None:
            return
        row = await self.repository.get_by_id(self._current.id)
        if row is not None:
            self._current = ai_model_to_read(row)

    # Credential lifecycle

    async def on_provider_added(self, provider: str) -> bool:
        self.refresh_model_cache()
        return await self.discover_and_load_provider_models(provider)

    async def on_provider_removed(self, provider: str) -> int:
        if self._current is not None and self._current.provider_name.lower() == provider.strip().lower():
            await self.clear_current_model()
        removed = await self.repository.delete_models_by_provider(provider)
        self.factory.clear_model_cache(provider)
        self.refresh_model_cache()
        return removed

    async def _on_credentials_changed(self, provider: str) -> None:
        if await self.credentials.has_active_api_key(provider):
            await self.on_provider_added(provider)
        else:
            await self.on_provider_removed(provider)

    # Reads

    def refresh_model_cache(self) -> None:
        self._active_cache = None

    async def get_all_models(self) -> List[AIModelRead]:
        return [ai_model_to_read(row) for row in await self.repository.get_all()]

    async def get_active_models(self) -> List[AIModelRead]:
        if self._active_cache is None:
            rows = await self.repository.get_active_models()
            self._active_cache = [ai_model_to_read(row) for row in rows]
        return list(self._active_cache)

    async def get_provider_models(self, provider: str) -> List[AIModelRead]:
        return [ai_model_to_read(row) for row in await self.repository.get_by_provider(provider)]

    async def get_favorite_models(self) -> List[AIModelRead]:
        return [ai_model_to_read(row) for row in await self.repository.get_favorite_models()]

    async def search_models(self, text: str, limit: int = 50) -> List[AIModelRead]:
        return [ai_model_to_read(row) for row in await self.repository.search(text, limit)]


@lru_cache(maxsize=1)
def get_model_manager() -> ModelManager:
    credentials = CredentialStore(AsyncSessionLocal)
    repository = ModelRepository(AsyncSessionLocal, credentials)
    return ModelManager(credentials, repository, build_default_factory(credentials))


__all__ = ["CurrentModelChanged", "ModelManager", "get_model_manager"]
