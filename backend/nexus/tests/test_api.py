from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from .. import lifecycle
from ..application import create_app
from ..db.session import create_session_factory
from ..services.credentials import CredentialStore
from ..services.model_manager import ModelManager
from ..services.model_repository import ModelRepository
from ..services.providers import ProviderFactory, StaticCatalogClient
from .conftest import OPENAI_KEY, make_descriptor, openai_models


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(lifecycle, "DISCOVER_ON_STARTUP", False)
    _, session_factory = create_session_factory(
        f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool
    )
    credentials = CredentialStore(session_factory, encryption_key=None, environ={})
    providers = ProviderFactory(credentials)
    providers.register(StaticCatalogClient("OpenAI", openai_models()))
    providers.register(StaticCatalogClient("Groq", [make_descriptor("Groq", "llama3-8b-8192")]))
    manager = ModelManager(credentials, ModelRepository(session_factory, credentials), providers)

    with TestClient(create_app(manager)) as test_client:
        yield test_client


def connect_openai(client: TestClient) -> dict:
    response = client.put("/providers/openai/api-key", json={"api_key": OPENAI_KEY})
    assert response.status_code == 200
    return response.json()


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["initialized"] is True
    assert body["providers"] == ["OpenAI", "Groq"]
    assert body["current_model"] is None


def test_list_providers_without_keys(client) -> None:
    response = client.get("/providers")

    assert response.status_code == 200
    assert [item["provider"] for item in response.json()] == ["OpenAI", "Groq"]
    assert all(item["has_api_key"] is False for item in response.json())
    assert all(item["source"] is None for item in response.json())


def test_saving_key_discovers_models(client) -> None:
    status = connect_openai(client)

    assert status["provider"] == "OpenAI"
    assert status["has_api_key"] is True
    assert status["source"] == "stored"
    assert status["masked_api_key"].startswith(OPENAI_KEY[:4])
    assert OPENAI_KEY not in status["masked_api_key"]
    assert status["model_count"] == 3

    models = client.get("/models", params={"active": True}).json()
    assert sorted(model["model_name"] for model in models) == ["gpt-3.5-turbo", "gpt-4o", "gpt-4o-mini"]


def test_invalid_key_and_unknown_provider(client) -> None:
    assert client.put("/providers/openai/api-key", json={"api_key": "bad"}).status_code == 400
    assert client.put("/providers/nowhere/api-key", json={"api_key": OPENAI_KEY}).status_code == 404
    assert client.delete("/providers/openai/api-key").status_code == 404


def test_select_current_model(client) -> None:
    connect_openai(client)

    response = client.put(
        "/models/current", json={"provider_name": "OpenAI", "model_name": "gpt-4o"}
    )
    assert response.status_code == 200
    assert response.json()["is_selected"] is True

    current = client.get("/models/current").json()
    assert current["model_name"] == "gpt-4o"
    assert current["usage_count"] == 1

    missing = client.put(
        "/models/current", json={"provider_name": "OpenAI", "model_name": "gpt-9"}
    )
    assert missing.status_code == 404

    assert client.delete("/models/current").status_code == 204
    assert client.get("/models/current").json() is None


def test_favorite_default_and_usage_routes(client) -> None:
    connect_openai(client)

    favorite = client.put("/models/OpenAI/gpt-4o-mini/favorite", json={"is_favorite": True})
    assert favorite.status_code == 200
    assert favorite.json()["is_favorite"] is True
    assert [m["model_name"] for m in client.get("/models", params={"favorites": True}).json()] == [
        "gpt-4o-mini"
    ]

    default = client.put("/models/openai/gpt-4o/default")
    assert default.status_code == 200
    assert default.json()["is_default"] is True
    assert client.put("/models/OpenAI/missing/default").status_code == 404

    usage = client.post("/models/OpenAI/gpt-4o/usage")
    assert usage.status_code == 200
    assert usage.json()["usage_count"] == 1


def test_model_names_may_contain_slashes(client) -> None:
    response = client.put(
        "/models/OpenAI/ft:gpt-4o/acme/support-bot/favorite", json={"is_favorite": True}
    )

    assert response.status_code == 200
    assert response.json()["model_name"] == "ft:gpt-4o/acme/support-bot"


def test_search_and_provider_filter(client) -> None:
    connect_openai(client)

    found = client.get("/models", params={"q": "mini"}).json()
    assert [model["model_name"] for model in found] == ["gpt-4o-mini"]

    by_provider = client.get("/models", params={"provider": "groq"}).json()
    assert by_provider == []


def test_discover_endpoint(client) -> None:
    connect_openai(client)

    response = client.post("/models/discover", json={"provider": "openai"})
    assert response.status_code == 200
    assert response.json() == {"provider": "OpenAI", "new_models_found": False, "total_models": 3}

    assert client.post("/models/discover", json={"provider": "nowhere"}).status_code == 404
    everything = client.post("/models/discover")
    assert everything.status_code == 200
    assert everything.json()["total_models"] == 3


def test_deleting_key_removes_models_and_selection(client) -> None:
    connect_openai(client)
    client.put("/models/current", json={"provider_name": "OpenAI", "model_name": "gpt-4o"})

    assert client.delete("/providers/OpenAI/api-key").status_code == 204

    assert client.get("/models").json() == []
    assert client.get("/models/current").json() is None
    status = client.get("/providers").json()[0]
    assert status["has_api_key"] is False
    assert status["model_count"] == 0
