from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from ...core.settings import ANTHROPIC_API_VERSION, ANTHROPIC_BASE_URL, HTTP_TIMEOUT
from ...schemas import ModelDescriptor
from .base import CatalogClient
from .heuristics import MAX_DISPLAY_NAME_LENGTH, context_window_for, display_name_for

_MAX_TOKENS = 4096


class AnthropicCatalogClient(CatalogClient):
    provider_name = "Anthropic"

    def __init__(
        self,
        base_url: str = ANTHROPIC_BASE_URL,
        *,
        api_version: str = ANTHROPIC_API_VERSION,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout)
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version

    async def list_models(self, api_key: str) -> List[ModelDescriptor]:
        headers = {"x-api-key": api_key, "anthropic-version": self.api_version}
        payload = await self._get_json(f"{self.base_url}/models?limit=1000", headers)
        return self._build_descriptors(self._entries(payload), self._to_descriptor)

    def _to_descriptor(self, entry: Dict[str, Any]) -> ModelDescriptor:
        model_id = entry["id"]
        display_name = entry.get("display_name")
        return ModelDescriptor(
            provider_name=self.provider_name,
            model_name=model_id,
            display_name=(
                display_name[:MAX_DISPLAY_NAME_LENGTH]
                if isinstance(display_name, str) and display_name
                else display_name_for(model_id)
            ),
            max_tokens=_MAX_TOKENS,
            max_context_window=context_window_for(model_id),
            supports_streaming=True,
            # Every Claude 3 and later model accepts images.
            supports_vision=not model_id.startswith(("claude-2", "claude-instant")),
            supports_code_completion=True,
        )
