from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from ...core.settings import HTTP_TIMEOUT
from ...schemas import ModelDescriptor
from .base import CatalogClient
from .heuristics import (
    DEFAULT_MAX_TOKENS,
    context_window_for,
    display_name_for,
    is_chat_model,
    supports_code_completion,
    supports_vision,
)


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and value > 0:
        return int(value)
    return None


class OpenAICompatibleCatalogClient(CatalogClient):
    """Reads ``GET {base_url}/models`` from an OpenAI-style API (OpenAI, Groq, ...)."""

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout)
        self.provider_name = provider_name
        self.base_url = base_url.rstrip("/")

    def _headers(self, api_key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    async def list_models(self, api_key: str) -> List[ModelDescriptor]:
        payload = await self._get_json(f"{self.base_url}/models", self._headers(api_key))
        entries = [entry for entry in self._entries(payload) if is_chat_model(entry["id"])]
        return self._build_descriptors(entries, self._to_descriptor)

    def _to_descriptor(self, entry: Dict[str, Any]) -> ModelDescriptor:
        model_id = entry["id"]
        context_window = (
            _positive_int(entry.get("context_window"))
            or _positive_int(entry.get("context_length"))
            or context_window_for(model_id)
        )
        max_tokens = _positive_int(entry.get("max_completion_tokens")) or min(
            DEFAULT_MAX_TOKENS, context_window
        )
        owner = entry.get("owned_by")
        return ModelDescriptor(
            provider_name=self.provider_name,
            model_name=model_id,
            display_name=display_name_for(model_id),
            description=f"Owned by {owner}" if owner else None,
            max_tokens=max_tokens,
            max_context_window=context_window,
            supports_streaming=True,
            supports_vision=supports_vision(model_id),
            supports_code_completion=supports_code_completion(model_id),
            is_available=entry.get("active", True) is not False,
        )
