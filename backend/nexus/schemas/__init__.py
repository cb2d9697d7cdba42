from .ai_model import (
    AIModelRead,
    CurrentModelUpdate,
    DiscoveryRequest,
    DiscoveryResponse,
    FavoriteUpdate,
    ModelDescriptor,
)
from .provider import ApiKeyUpdate, ProviderStatusRead

__all__ = [
    "AIModelRead",
    "ApiKeyUpdate",
    "CurrentModelUpdate",
    "DiscoveryRequest",
    "DiscoveryResponse",
    "FavoriteUpdate",
    "ModelDescriptor",
    "ProviderStatusRead",
]
