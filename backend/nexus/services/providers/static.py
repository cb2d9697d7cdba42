from __future__ import annotations

from typing import Iterable, List, Optional

from ...schemas import ModelDescriptor
from .base import CatalogClient

DUMMY_PROVIDER = "Dummy"


def dummy_models() -> List[ModelDescriptor]:
    return [
        ModelDescriptor(
            provider_name=DUMMY_PROVIDER,
            model_name="dummy-echo",
            display_name="Dummy Echo",
            description="Offline test model that echoes its input",
            max_tokens=1024,
            max_context_window=4096,
        ),
        ModelDescriptor(
            provider_name=DUMMY_PROVIDER,
            model_name="dummy-vision",
            display_name="Dummy Vision",
            description="Offline test model that accepts images",
            max_tokens=1024,
            max_context_window=4096,
            supports_vision=True,
        ),
    ]


class StaticCatalogClient(CatalogClient):
    """Serves a fixed list of models without touching the network."""

    def __init__(self, provider_name: str, models: Optional[Iterable[ModelDescriptor]] = None) -> None:
        self.provider_name = provider_name
        self._models = [
            model.model_copy(update={"provider_name": provider_name}) for model in (models or [])
        ]

    async def list_models(self, api_key: str) -> List[ModelDescriptor]:
        return [model.model_copy() for model in self._models]

    async def aclose(self) -> None:
        return None
