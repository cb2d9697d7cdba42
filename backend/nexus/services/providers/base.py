from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx
from pydantic import ValidationError

from ...core.settings import HTTP_TIMEOUT, USER_AGENT
from ...schemas import ModelDescriptor

logger = logging.getLogger(__name__)


class ProviderCatalogError(Exception):
    """A provider's model catalog could not be fetched or understood."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        status_code: Optional[int] = None,
        is_timeout: bool = False,
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.status_code = status_code
        self.is_timeout = is_timeout


class CatalogClient(ABC):
    """Lists the models one provider offers for a given API key."""

    provider_name: str

    def __init__(
        self,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout, headers={"User-Agent": USER_AGENT}
        )

    @abstractmethod
    async def list_models(self, api_key: str) -> List[ModelDescriptor]:
        ...

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(self, url: str, headers: Dict[str, str]) -> Any:
        logger.debug("Fetching model catalog for %s from %s", self.provider_name, url)
        try:
            response = await self._client.get(url, headers=headers)
        except httpx.TimeoutException as exc:
            raise ProviderCatalogError(
                self.provider_name, f"Request timed out: {exc}", is_timeout=True
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderCatalogError(
                self.provider_name, f"Unable to reach catalog endpoint: {exc}"
            ) from exc

        if response.status_code != 200:
            raise ProviderCatalogError(
                self.provider_name,
                f"Catalog request failed with status {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderCatalogError(
                self.provider_name, "Catalog response is not valid JSON"
            ) from exc

    def _entries(self, payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            raise ProviderCatalogError(self.provider_name, "Catalog response has no 'data' list")
        return [
            entry
            for entry in payload["data"]
            if isinstance(entry, dict) and isinstance(entry.get("id"), str) and entry["id"]
        ]

    def _build_descriptors(
        self,
        entries: Iterable[Dict[str, Any]],
        build: Callable[[Dict[str, Any]], ModelDescriptor],
    ) -> List[ModelDescriptor]:
        models = []
        for entry in entries:
            try:
                models.append(build(entry))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed catalog entry %.80r from %s: %d validation errors",
                    entry.get("id"),
                    self.provider_name,
                    exc.error_count(),
                )
        return sorted(models, key=lambda model: model.model_name)


__all__ = ["CatalogClient", "ProviderCatalogError"]
