from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None or raw_value.strip() == "":
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw_value = os.getenv(name)
    if raw_value is None or raw_value.strip() == "":
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


_DEFAULT_DB_PATH = Path(
    os.getenv("DATABASE_FILE", Path(__file__).resolve().parents[2] / "nexus.db")
)

DATABASE_URL = os.getenv("DATABASE_URL")
if DATABASE_URL is None:
    _DEFAULT_DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    DATABASE_URL = f"sqlite+aiosqlite:///{_DEFAULT_DB_PATH}"

LOG_LEVEL = os.getenv("NEXUS_LOG_LEVEL", "INFO").upper()

# Discovery and caching
MODEL_CACHE_TTL = _env_float("NEXUS_MODEL_CACHE_TTL", 600.0)
DISCOVERY_TIMEOUT = _env_float("NEXUS_DISCOVERY_TIMEOUT", 30.0)
HTTP_TIMEOUT = _env_float("NEXUS_HTTP_TIMEOUT", 15.0)
DISCOVER_ON_STARTUP = _env_bool("NEXUS_DISCOVER_ON_STARTUP", True)
AUTO_SELECT_MODEL = _env_bool("NEXUS_AUTO_SELECT_MODEL", True)
ENABLE_DUMMY_PROVIDER = _env_bool("NEXUS_ENABLE_DUMMY_PROVIDER", False)

# Credentials
API_KEY_ENCRYPTION_KEY = os.getenv("NEXUS_API_KEY_ENCRYPTION_KEY")
API_KEY_ENV_PREFIX = "AI_KEY_"

# Catalog endpoints
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
ANTHROPIC_BASE_URL = os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com/v1")
ANTHROPIC_API_VERSION = os.getenv("ANTHROPIC_API_VERSION", "2023-06-01")
GROQ_BASE_URL = os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")

USER_AGENT = "NexusChat/0.5.0"
