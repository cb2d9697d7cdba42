from __future__ import annotations

import asyncio
from typing import List

import pytest

from ..schemas import ModelDescriptor
from ..services.providers import (
    CatalogClient,
    ProviderCatalogError,
    ProviderFactory,
    StaticCatalogClient,
    build_default_factory,
)
from .conftest import GROQ_KEY, OPENAI_KEY, make_descriptor, openai_models


class FailingClient(CatalogClient):
    def __init__(self, provider_name: str, error: Exception) -> None:
        self.provider_name = provider_name
        self.error = error

    async def list_models(self, api_key: str) -> List[ModelDescriptor]:
        raise self.error

    async def aclose(self) -> None:
        return None


class SlowClient(CatalogClient):
    def __init__(self, provider_name: str) -> None:
        self.provider_name = provider_name
        self.cancelled = False

    async def list_models(self, api_key: str) -> List[ModelDescriptor]:
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return [make_descriptor(self.provider_name, "never")]

    async def aclose(self) -> None:
        return None


class CountingClient(StaticCatalogClient):
    def __init__(self, provider_name: str, models: List[ModelDescriptor]) -> None:
        super().__init__(provider_name, models)
        self.calls = 0

    async def list_models(self, api_key: str) -> List[ModelDescriptor]:
        self.calls += 1
        return await super().list_models(api_key)


class FlakyClient(CountingClient):
    async def list_models(self, api_key: str) -> List[ModelDescriptor]:
        models = await super().list_models(api_key)
        if self.calls == 1:
            raise ProviderCatalogError(self.provider_name, "temporarily unavailable", status_code=503)
        return models


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_failing_provider_does_not_hide_other_results(credentials) -> None:
    await credentials.save_provider_api_key("OpenAI", OPENAI_KEY)
    await credentials.save_provider_api_key("Groq", GROQ_KEY)
    factory = ProviderFactory(credentials)
    factory.register(FailingClient("OpenAI", ProviderCatalogError("OpenAI", "boom", status_code=500)))
    factory.register(StaticCatalogClient("Groq", [make_descriptor("Groq", "llama3-8b-8192")]))

    models = await factory.get_all_models()

    assert [(model.provider_name, model.model_name) for model in models] == [
        ("Groq", "llama3-8b-8192")
    ]


@pytest.mark.asyncio
async def test_unexpected_client_error_is_contained(credentials) -> None:
    await credentials.save_provider_api_key("OpenAI", OPENAI_KEY)
    factory = ProviderFactory(credentials)
    factory.register(FailingClient("OpenAI", KeyError("data")))

    assert await factory.get_all_models() == []
    assert await factory.get_provider_models("OpenAI") == []


@pytest.mark.asyncio
async def test_providers_without_credentials_contribute_nothing(credentials) -> None:
    await credentials.save_provider_api_key("OpenAI", OPENAI_KEY)
    groq = CountingClient("Groq", [make_descriptor("Groq", "llama3-8b-8192")])
    factory = ProviderFactory(credentials)
    factory.register(StaticCatalogClient("OpenAI", openai_models()))
    factory.register(groq)

    models = await factory.get_all_models()

    assert {model.provider_name for model in models} == {"OpenAI"}
    assert groq.calls == 0


@pytest.mark.asyncio
async def test_timeout_returns_results_already_obtained(credentials) -> None:
    await credentials.save_provider_api_key("OpenAI", OPENAI_KEY)
    await credentials.save_provider_api_key("Groq", GROQ_KEY)
    slow = SlowClient("Groq")
    factory = ProviderFactory(credentials)
    factory.register(StaticCatalogClient("OpenAI", openai_models()))
    factory.register(slow)

    models = await factory.get_all_models(timeout=0.5)

    assert len(models) == 3
    assert {model.provider_name for model in models} == {"OpenAI"}
    assert slow.cancelled is True


@pytest.mark.asyncio
async def test_single_provider_timeout_returns_empty(credentials) -> None:
    await credentials.save_provider_api_key("Groq", GROQ_KEY)
    factory = ProviderFactory(credentials)
    factory.register(SlowClient("Groq"))

    assert await factory.get_provider_models("groq", timeout=0.05) == []


@pytest.mark.asyncio
async def test_results_are_deduplicated_by_natural_key(credentials) -> None:
    await credentials.save_provider_api_key("OpenAI", OPENAI_KEY)
    duplicated = openai_models() + [make_descriptor("OpenAI", "gpt-4o", display_name="again")]
    factory = ProviderFactory(credentials)
    factory.register(StaticCatalogClient("OpenAI", duplicated))

    models = await factory.get_all_models()

    assert sorted(model.model_name for model in models) == ["gpt-3.5-turbo", "gpt-4o", "gpt-4o-mini"]


@pytest.mark.asyncio
async def test_catalog_is_cached_until_ttl_expires(credentials) -> None:
    await credentials.save_provider_api_key("OpenAI", OPENAI_KEY)
    clock = FakeClock()
    client = CountingClient("OpenAI", openai_models())
    factory = ProviderFactory(credentials, cache_ttl=600, clock=clock)
    factory.register(client)

    await factory.get_all_models()
    clock.now += 599
    await factory.get_provider_models("OpenAI")
    assert client.calls == 1

    clock.now += 2
    await factory.get_all_models()
    assert client.calls == 2

    factory.clear_model_cache("openai")
    await factory.get_all_models()
    assert client.calls == 3


@pytest.mark.asyncio
async def test_failed_fetch_is_not_cached(credentials) -> None:
    await credentials.save_provider_api_key("OpenAI", OPENAI_KEY)
    client = FlakyClient("OpenAI", openai_models())
    factory = ProviderFactory(credentials)
    factory.register(client)
    assert await factory.get_all_models() == []

    assert len(await factory.get_all_models()) == 3
    assert client.calls == 2


def test_registry_lookup_is_case_insensitive(credentials) -> None:
    factory = ProviderFactory(credentials)
    factory.register(StaticCatalogClient("OpenRouter", []))

    assert factory.get_client("openrouter") is not None
    assert factory.canonical_name("OPENROUTER") == "OpenRouter"
    assert factory.get_client("Anthropic") is None

    factory.unregister("OPENROUTER")
    assert factory.provider_names == []


@pytest.mark.asyncio
async def test_default_factory_registers_known_providers(credentials) -> None:
    factory = build_default_factory(credentials, enable_dummy=True)
    try:
        assert factory.provider_names == ["OpenAI", "Anthropic", "Groq", "OpenRouter", "Dummy"]
    finally:
        await factory.aclose()


@pytest.mark.asyncio
async def test_revoked_key_stops_serving_cached_models(credentials, environ) -> None:
    await credentials.save_provider_api_key("OpenAI", OPENAI_KEY)
    environ["AI_KEY_GROQ"] = GROQ_KEY
    factory = ProviderFactory(credentials)
    factory.register(StaticCatalogClient("OpenAI", openai_models()))
    factory.register(StaticCatalogClient("Groq", [make_descriptor("Groq", "llama3-8b-8192")]))
    assert len(await factory.get_all_models()) == 4

    await credentials.delete_provider_api_key("OpenAI")
    environ.pop("AI_KEY_GROQ")

    assert await factory.get_all_models() == []
    assert await factory.get_provider_models("OpenAI") == []
    assert await factory.get_provider_models("Groq") == []
