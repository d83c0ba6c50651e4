import pytest

from ai_terminal.domain.exceptions import (
    MissingCredentialError,
    ProviderError,
    UnknownProviderError,
    ValidationError,
)
from ai_terminal.domain.models import ProviderRequest
from ai_terminal.providers import create_provider
from ai_terminal.providers.anthropic_client import AnthropicClient
from ai_terminal.providers.gateway import ProviderGateway
from ai_terminal.providers.gemini_client import GeminiClient


class RecordingClient:
    def __init__(self, name, reply="ok", error=None):
        self.name = name
        self.reply = reply
        self.error = error
        self.calls = []

    def complete(self, req):
        self.calls.append(req)
        if self.error is not None:
            raise self.error
        return self.reply


def _gateway(**overrides):
    clients = {
        "gemini": RecordingClient("gemini", "from gemini"),
        "openai": RecordingClient("openai", "from openai"),
        "anthropic": RecordingClient("anthropic", "from claude"),
    }
    clients.update(overrides)
    return ProviderGateway(clients=clients), clients


def _req(provider="gemini", model="gemini-2.0-flash", key="k"):
    return ProviderRequest(
        provider_id=provider,
        model_id=model,
        api_key=key,
        system_prompt="s",
        user_prompt="u",
    )


def test_gateway_dispatches_by_provider():
    gw, clients = _gateway()
    assert gw.complete(_req("openai", "gpt-4o")) == "from openai"
    assert len(clients["openai"].calls) == 1
    assert clients["gemini"].calls == []


def test_gateway_provider_is_case_insensitive():
    gw, clients = _gateway()
    assert gw.complete(_req("Anthropic", "claude-3-5-sonnet")) == "from claude"


def test_gateway_unknown_provider():
    gw, clients = _gateway()
    with pytest.raises(UnknownProviderError) as ei:
        gw.complete(_req("mistral", "x"))
    assert ei.value.code == "UNKNOWN_PROVIDER"
    assert all(not c.calls for c in clients.values())


def test_gateway_empty_key_fails_before_client():
    gw, clients = _gateway()
    with pytest.raises(MissingCredentialError) as ei:
        gw.complete(_req("gemini", "", key=""))
    assert ei.value.message == "Google Gemini API key is missing"
    assert clients["gemini"].calls == []


def test_gateway_empty_model_is_invalid():
    gw, clients = _gateway()
    with pytest.raises(ValidationError) as ei:
        gw.complete(_req("openai", "  "))
    assert ei.value.code == "INVALID_REQUEST"
    assert clients["openai"].calls == []


def test_gateway_propagates_provider_error():
    err = ProviderError(code="API_ERROR", message="Gemini Error 500: boom", http_status=500, provider="gemini")
    gw, clients = _gateway(gemini=RecordingClient("gemini", error=err))
    with pytest.raises(ProviderError) as ei:
        gw.complete(_req())
    assert ei.value is err


def test_gateway_missing_client():
    gw = ProviderGateway(clients={"gemini": RecordingClient("gemini")})
    with pytest.raises(ValidationError) as ei:
        gw.complete(_req("openai", "gpt-4o"))
    assert ei.value.code == "PROVIDER_NOT_CONFIGURED"


def test_create_provider_default(monkeypatch):
    class DummySettings:
        default_provider = "gemini"
        http_timeout = 1.0
        gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"

    monkeypatch.setattr("ai_terminal.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, GeminiClient)


def test_create_provider_explicit():
    provider = create_provider("anthropic")
    assert isinstance(provider, AnthropicClient)


def test_gateway_whitespace_key_is_missing():
    gw, clients = _gateway()
    with pytest.raises(MissingCredentialError) as ei:
        gw.complete(_req("anthropic", "claude-3-5-sonnet", key="   "))
    assert ei.value.message == "Anthropic API key is missing"
    assert clients["anthropic"].calls == []
