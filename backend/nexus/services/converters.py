from __future__ import annotations

from typing import Any, Dict, Optional, Union

from ..models import AIModel
from ..models.ai_model import PROVIDER_FIELDS
from ..schemas import AIModelRead, ModelDescriptor


def mask_api_key(value: Optional[str]) -> str:
    if not value:
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"


def provider_fields(descriptor: ModelDescriptor) -> Dict[str, Any]:
    return {name: getattr(descriptor, name) for name in PROVIDER_FIELDS}


def descriptor_to_model(descriptor: ModelDescriptor) -> AIModel:
    return AIModel(
        provider_name=descriptor.provider_name,
        model_name=descriptor.model_name,
        is_favorite=False,
        is_default=False,
        is_selected=False,
        usage_count=0,
        **provider_fields(descriptor),
    )


def model_to_descriptor(model: Union[AIModel, ModelDescriptor]) -> ModelDescriptor:
    if isinstance(model, ModelDescriptor):
        return model
    return ModelDescriptor(
        provider_name=model.provider_name,
        model_name=model.model_name,
        display_name=model.display_name,
        description=model.description,
        version=model.version,
        max_tokens=model.max_tokens if model.max_tokens is not None else 4096,
        max_context_window=(
            model.max_context_window if model.max_context_window is not None else 8192
        ),
        default_temperature=(
            model.default_temperature if model.default_temperature is not None else 0.7
        ),
        supports_streaming=bool(model.supports_streaming),
        supports_vision=bool(model.supports_vision),
        supports_code_completion=bool(model.supports_code_completion),
        is_available=bool(model.is_available) if model.is_available is not None else True,
    )


def ai_model_to_read(model: AIModel) -> AIModelRead:
    return AIModelRead(
        id=model.id,
        provider_name=model.provider_name,
        model_name=model.model_name,
        display_name=model.display_name,
        description=model.description,
        version=model.version,
        max_tokens=model.max_tokens,
        max_context_window=model.max_context_window,
        default_temperature=model.default_temperature,
        supports_streaming=model.supports_streaming,
        supports_vision=model.supports_vision,
        supports_code_completion=model.supports_code_completion,
        is_available=model.is_available,
        is_favorite=model.is_favorite,
        is_default=model.is_default,
        is_selected=model.is_selected,
        usage_count=model.usage_count,
        last_used=model.last_used,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
