from __future__ import annotations

from fastapi import FastAPI

from .routes import health, models, providers


def register_routes(app: FastAPI) -> None:
    app.include_router(models.router)
    app.include_router(providers.router)
    app.include_router(health.router)
