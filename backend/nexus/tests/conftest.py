from __future__ import annotations

from typing import Dict, List

import pytest
import pytest_asyncio

from ..db.session import create_session_factory, initialise_database
from ..schemas import ModelDescriptor
from ..services.credentials import CredentialStore
from ..services.model_manager import ModelManager
from ..services.model_repository import ModelRepository
from ..services.providers import ProviderFactory, StaticCatalogClient

OPENAI_KEY = "sk-" + "A1b2C3d4" * 4
GROQ_KEY = "gsk_" + "Z9y8X7w6" * 3


def make_descriptor(provider: str, name: str, **overrides) -> ModelDescriptor:
    fields = {"display_name": name.upper(), "max_context_window": 16000}
    fields.update(overrides)
    return ModelDescriptor(provider_name=provider, model_name=name, **fields)


def openai_models() -> List[ModelDescriptor]:
    return [
        make_descriptor("OpenAI", "gpt-4o", supports_vision=True),
        make_descriptor("OpenAI", "gpt-4o-mini"),
        make_descriptor("OpenAI", "gpt-3.5-turbo"),
    ]


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'nexus-test.db'}"


@pytest_asyncio.fixture
async def session_factory(database_url):
    engine, factory = create_session_factory(database_url)
    await initialise_database(factory)
    yield factory
    await engine.dispose()


@pytest.fixture
def environ() -> Dict[str, str]:
    return {}


@pytest.fixture
def credentials(session_factory, environ) -> CredentialStore:
    return CredentialStore(session_factory, encryption_key=None, environ=environ)


@pytest.fixture
def repository(session_factory, credentials) -> ModelRepository:
    return ModelRepository(session_factory, credentials)


@pytest.fixture
def factory(credentials) -> ProviderFactory:
    provider_factory = ProviderFactory(credentials)
    provider_factory.register(StaticCatalogClient("OpenAI", openai_models()))
    return provider_factory


@pytest.fixture
def manager(credentials, repository, factory) -> ModelManager:
    return ModelManager(credentials, repository, factory, auto_select=True, discovery_timeout=5)
