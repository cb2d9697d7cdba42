from .ai_model import AIModel
from .provider_credential import ProviderCredential

__all__ = [
    "AIModel",
    "ProviderCredential",
]
