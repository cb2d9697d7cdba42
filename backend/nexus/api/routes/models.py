from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...schemas import (
    AIModelRead,
    CurrentModelUpdate,
    DiscoveryRequest,
    DiscoveryResponse,
    FavoriteUpdate,
)
from ...services.converters import ai_model_to_read
from ...services.model_manager import ModelManager, get_model_manager

router = APIRouter()


async def _get_model_or_404(manager: ModelManager, provider: str, name: str):
    model = await manager.repository.get_model_by_name(provider, name)
    if model is None:
        raise HTTPException(status_code=404, detail="Model not found.")
    return model


@router.get("/models", response_model=List[AIModelRead])
async def list_models(
    provider: Optional[str] = None,
    favorites: bool = False,
    active: bool = False,
    q: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    manager: ModelManager = Depends(get_model_manager),
):
    if q is not None:
        models = await manager.search_models(q, limit)
    elif favorites:
        models = await manager.get_favorite_models()
    elif active:
        models = await manager.get_active_models()
    else:
        models = await manager.get_all_models()
    if provider:
        models = [model for model in models if model.provider_name.lower() == provider.lower()]
    return models


@router.get("/models/current", response_model=Optional[AIModelRead])
async def get_current_model(manager: ModelManager = Depends(get_model_manager)):
    return manager.current_model


@router.put("/models/current", response_model=AIModelRead)
async def set_current_model(
    payload: CurrentModelUpdate, manager: ModelManager = Depends(get_model_manager)
):
    model = await _get_model_or_404(manager, payload.provider_name, payload.model_name)
    if not await manager.set_current_model(model):
        raise HTTPException(status_code=502, detail="Unable to select model.")
    return manager.current_model


@router.delete("/models/current", status_code=status.HTTP_204_NO_CONTENT)
async def clear_current_model(manager: ModelManager = Depends(get_model_manager)):
    if not await manager.clear_current_model():
        raise HTTPException(status_code=502, detail="Unable to clear the current model.")


@router.post("/models/discover", response_model=DiscoveryResponse)
async def discover_models(
    payload: Optional[DiscoveryRequest] = None,
    manager: ModelManager = Depends(get_model_manager),
):
    payload = payload or DiscoveryRequest()
    if payload.provider:
        provider = manager.factory.canonical_name(payload.provider)
        if provider is None:
            raise HTTPException(status_code=404, detail="Provider not found.")
        found = await manager.discover_and_load_provider_models(provider, payload.timeout)
        total = len(await manager.get_provider_models(provider))
    else:
        provider = None
        found = await manager.discover_and_load_models(payload.timeout)
        total = len(await manager.get_all_models())
    return DiscoveryResponse(provider=provider, new_models_found=found, total_models=total)


@router.put("/models/{provider}/{name:path}/favorite", response_model=AIModelRead)
async def set_favorite(
    provider: str,
    name: str,
    payload: FavoriteUpdate,
    manager: ModelManager = Depends(get_model_manager),
):
    if not await manager.set_favorite_status(provider, name, payload.is_favorite):
        raise HTTPException(status_code=502, detail="Unable to update favorite status.")
    model = await _get_model_or_404(manager, provider, name)
    return ai_model_to_read(model)


@router.put("/models/{provider}/{name:path}/default", response_model=AIModelRead)
async def set_default(
    provider: str, name: str, manager: ModelManager = Depends(get_model_manager)
):
    await _get_model_or_404(manager, provider, name)
    if not await manager.set_default_model(provider, name):
        raise HTTPException(status_code=502, detail="Unable to set default model.")
    model = await _get_model_or_404(manager, provider, name)
    return ai_model_to_read(model)


@router.post("/models/{provider}/{name:path}/usage", response_model=AIModelRead)
async def record_usage(
    provider: str, name: str, manager: ModelManager = Depends(get_model_manager)
):
    await _get_model_or_404(manager, provider, name)
    if not await manager.record_model_usage(provider, name):
        raise HTTPException(status_code=502, detail="Unable to record model usage.")
    model = await _get_model_or_404(manager, provider, name)
    return ai_model_to_read(model)
