from .anthropic import AnthropicCatalogClient
from .base import CatalogClient, ProviderCatalogError
from .factory import ProviderFactory, build_default_factory
from .openai_compatible import OpenAICompatibleCatalogClient
from .openrouter import OpenRouterCatalogClient
from .static import DUMMY_PROVIDER, StaticCatalogClient, dummy_models

__all__ = [
    "AnthropicCatalogClient",
    "CatalogClient",
    "DUMMY_PROVIDER",
    "OpenAICompatibleCatalogClient",
    "OpenRouterCatalogClient",
    "ProviderCatalogError",
    "ProviderFactory",
    "StaticCatalogClient",
    "build_default_factory",
    "dummy_models",
]
