from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI

from .core.settings import AUTO_SELECT_MODEL, DISCOVER_ON_STARTUP
from .db.session import engine, initialise_database
from .services.model_manager import ModelManager, get_model_manager

logger = logging.getLogger(__name__)


def resolve_model_manager(app: FastAPI) -> ModelManager:
    provider = app.dependency_overrides.get(get_model_manager, get_model_manager)
    return provider()


async def _discover_in_background(manager: ModelManager) -> None:
    try:
        found = await manager.discover_and_load_models()
        logger.info("Startup discovery finished (new models: %s)", found)
        if AUTO_SELECT_MODEL:
            await manager.ensure_current_model()
    except asyncio.CancelledError:
        raise
    except Exception:  # noqa: BLE001
        logger.exception("Startup discovery failed")


def register_events(app: FastAPI) -> None:
    @app.on_event("startup")
    async def _on_startup() -> None:
        manager = resolve_model_manager(app)
        await initialise_database(manager.repository.session_factory)
        await manager.initialize()
        app.state.discovery_task = None
        if DISCOVER_ON_STARTUP:
            app.state.discovery_task = asyncio.create_task(_discover_in_background(manager))

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        task = getattr(app.state, "discovery_task", None)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await resolve_model_manager(app).aclose()
        await engine.dispose()
