from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class ApiKeyUpdate(BaseModel):
    api_key: str = Field(..., min_length=1)


class ProviderStatusRead(BaseModel):
    provider: str
    has_api_key: bool
    source: Optional[Literal["stored", "environment"]]
    masked_api_key: str
    model_count: int
