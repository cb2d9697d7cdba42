from __future__ import annotations

from fastapi import APIRouter, Depends

from ...services.model_manager import ModelManager, get_model_manager

router = APIRouter()


@router.get("/health")
async def health(manager: ModelManager = Depends(get_model_manager)):
    current = manager.current_model
    return {
        "status": "ok",
        "initialized": manager.is_initialized,
        "providers": manager.factory.provider_names,
        "current_model": f"{current.provider_name}/{current.model_name}" if current else None,
    }
