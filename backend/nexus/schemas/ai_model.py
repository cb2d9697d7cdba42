from __future__ import annotations

from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ModelDescriptor(BaseModel):
    """A model as reported by a provider catalog, without any user-owned state."""

    model_config = ConfigDict(protected_namespaces=())

    provider_name: str = Field(..., min_length=1, max_length=50)
    model_name: str = Field(..., min_length=1, max_length=150)
    display_name: Optional[str] = Field(default=None, max_length=150)
    description: Optional[str] = None
    version: Optional[str] = Field(default=None, max_length=50)
    max_tokens: int = Field(default=4096, ge=0)
    max_context_window: int = Field(default=8192, ge=0)
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    supports_streaming: bool = True
    supports_vision: bool = False
    supports_code_completion: bool = False
    is_available: bool = True

    @property
    def natural_key(self) -> Tuple[str, str]:
        return (self.provider_name, self.model_name)


class AIModelRead(ModelDescriptor):
    id: int
    is_favorite: bool
    is_default: bool
    is_selected: bool
    usage_count: int
    last_used: Optional[datetime]
    created_at: datetime
    updated_at: datetime


class CurrentModelUpdate(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    provider_name: str = Field(..., min_length=1, max_length=50)
    model_name: str = Field(..., min_length=1, max_length=150)


class FavoriteUpdate(BaseModel):
    is_favorite: bool


class DiscoveryRequest(BaseModel):
    provider: Optional[str] = Field(default=None, max_length=50)
    timeout: Optional[float] = Field(default=None, gt=0)


class DiscoveryResponse(BaseModel):
    provider: Optional[str]
    new_models_found: bool
    total_models: int
