from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ...schemas import ApiKeyUpdate, ProviderStatusRead
from ...services.converters import mask_api_key
from ...services.credentials import is_valid_api_key_format
from ...services.model_manager import ModelManager, get_model_manager

router = APIRouter()


def _canonical_or_404(manager: ModelManager, provider: str) -> str:
    name = manager.factory.canonical_name(provider)
    if name is None:
        raise HTTPException(status_code=404, detail="Provider not found.")
    return name


async def _provider_status(manager: ModelManager, provider: str) -> ProviderStatusRead:
    credentials = manager.credentials
    api_key = await credentials.get_api_key(provider, record_use=False)
    return ProviderStatusRead(
        provider=provider,
        has_api_key=await credentials.has_active_api_key(provider),
        source=await credentials.key_source(provider),
        masked_api_key=mask_api_key(api_key),
        model_count=len(await manager.get_provider_models(provider)),
    )


@router.get("/providers", response_model=List[ProviderStatusRead])
async def list_providers(manager: ModelManager = Depends(get_model_manager)):
    return [await _provider_status(manager, name) for name in manager.factory.provider_names]


@router.put("/providers/{provider}/api-key", response_model=ProviderStatusRead)
async def save_api_key(
    provider: str, payload: ApiKeyUpdate, manager: ModelManager = Depends(get_model_manager)
):
    name = _canonical_or_404(manager, provider)
    if not is_valid_api_key_format(payload.api_key.strip()):
        raise HTTPException(status_code=400, detail="API key format is not valid.")
    if not await manager.credentials.save_provider_api_key(name, payload.api_key):
        raise HTTPException(status_code=502, detail="Unable to store API key.")
    return await _provider_status(manager, name)


@router.delete("/providers/{provider}/api-key", status_code=status.HTTP_204_NO_CONTENT)
async def delete_api_key(provider: str, manager: ModelManager = Depends(get_model_manager)):
    name = _canonical_or_404(manager, provider)
    source = await manager.credentials.key_source(name)
    if source == "environment":
        raise HTTPException(
            status_code=400, detail="API key is set in the environment and cannot be deleted."
        )
    if source is None:
        raise HTTPException(status_code=404, detail="No stored API key for provider.")
    if not await manager.credentials.delete_provider_api_key(name):
        raise HTTPException(status_code=502, detail="Unable to delete API key.")
