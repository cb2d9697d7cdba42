from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from ...core.settings import HTTP_TIMEOUT, OPENROUTER_BASE_URL
from ...schemas import ModelDescriptor
from .heuristics import (
    DEFAULT_MAX_TOKENS,
    MAX_DISPLAY_NAME_LENGTH,
    context_window_for,
    display_name_for,
    supports_code_completion,
    supports_vision,
)
from .openai_compatible import OpenAICompatibleCatalogClient, _positive_int


def _accepts_images(architecture: Any) -> Optional[bool]:
    if not isinstance(architecture, dict):
        return None
    modalities = architecture.get("input_modalities")
    if isinstance(modalities, list):
        return "image" in modalities
    modality = architecture.get("modality")
    if isinstance(modality, str) and "->" in modality:
        return "image" in modality.split("->", 1)[0]
    return None


class OpenRouterCatalogClient(OpenAICompatibleCatalogClient):
    """OpenRouter's catalog carries names, descriptions and modalities per model."""

    def __init__(
        self,
        base_url: str = OPENROUTER_BASE_URL,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        super().__init__("OpenRouter", base_url, http_client=http_client, timeout=timeout)

    async def list_models(self, api_key: str) -> List[ModelDescriptor]:
        payload = await self._get_json(f"{self.base_url}/models", self._headers(api_key))
        return self._build_descriptors(self._entries(payload), self._to_descriptor)

    def _to_descriptor(self, entry: Dict[str, Any]) -> ModelDescriptor:
        model_id = entry["id"]
        top_provider = entry.get("top_provider") if isinstance(entry.get("top_provider"), dict) else {}
        context_window = (
            _positive_int(entry.get("context_length"))
            or _positive_int(top_provider.get("context_length"))
            or context_window_for(model_id)
        )
        max_tokens = _positive_int(top_provider.get("max_completion_tokens")) or min(
            DEFAULT_MAX_TOKENS, context_window
        )
        vision = _accepts_images(entry.get("architecture"))
        name = entry.get("name")
        description = entry.get("description")
        return ModelDescriptor(
            provider_name=self.provider_name,
            model_name=model_id,
            display_name=(
                name[:MAX_DISPLAY_NAME_LENGTH]
                if isinstance(name, str) and name
                else display_name_for(model_id)
            ),
            description=description if isinstance(description, str) and description else None,
            max_tokens=max_tokens,
            max_context_window=context_window,
            supports_streaming=True,
            supports_vision=supports_vision(model_id) if vision is None else vision,
            supports_code_completion=supports_code_completion(model_id),
        )
