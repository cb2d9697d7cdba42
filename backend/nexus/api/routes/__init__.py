from __future__ import annotations

from . import health, models, providers

__all__ = [
    "health",
    "models",
    "providers",
]
