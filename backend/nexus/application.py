from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.router import register_routes
from .lifecycle import register_events
from .services.model_manager import ModelManager, get_model_manager


def create_app(manager: Optional[ModelManager] = None) -> FastAPI:
    app = FastAPI(title="Nexus Model Service")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if manager is not None:
        app.dependency_overrides[get_model_manager] = lambda: manager

    register_routes(app)
    register_events(app)

    return app
