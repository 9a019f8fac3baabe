"""
Tests for llm.py - provider error classification and the completion wrapper.
No network calls: the Anthropic client is replaced with a stub.
"""
import asyncio
import pytest
import sys
import os
from types import SimpleNamespace

import anthropic
import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
import llm
from errors import (
    InternalError,
    UpstreamAuthFailed,
    UpstreamNetworkError,
    UpstreamParseFailed,
    UpstreamRateLimited,
)

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def status_error(cls, status_code):
    return cls("provider error", response=httpx.Response(status_code, request=REQUEST), body=None)


class StubMessages:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def stub_client(monkeypatch):
    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "test-key")
    messages = StubMessages()
    monkeypatch.setattr(llm, "_client", SimpleNamespace(messages=messages))
    return messages


class TestClassifyProviderError:

    def test_typed_provider_errors(self):
        assert isinstance(llm.classify_provider_error(status_error(anthropic.RateLimitError, 429)), UpstreamRateLimited)
        assert isinstance(llm.classify_provider_error(status_error(anthropic.AuthenticationError, 401)), UpstreamAuthFailed)
        assert isinstance(llm.classify_provider_error(anthropic.APITimeoutError(request=REQUEST)), UpstreamNetworkError)
        assert isinstance(llm.classify_provider_error(anthropic.APIConnectionError(request=REQUEST)), UpstreamNetworkError)

    @pytest.mark.parametrize("message, expected", [
        ("Resource has been exhausted (e.g. check quota).", UpstreamRateLimited),
        ("HTTP 429 Too Many Requests", UpstreamRateLimited),
        ("API_KEY_INVALID", UpstreamAuthFailed),
        ("request failed with 401", UpstreamAuthFailed),
        ("Unexpected token in JSON", UpstreamParseFailed),
        ("fetch failed", UpstreamNetworkError),
        ("read timeout", UpstreamNetworkError),
        ("something odd happened", InternalError),
    ])
    def test_message_based(self, message, expected):
        assert type(llm.classify_provider_error(Exception(message))) is expected

    def test_status_codes(self):
        assert UpstreamRateLimited().status_code == 429
        assert UpstreamAuthFailed().status_code == 401
        assert InternalError().status_code == 500


class TestComplete:

    def test_returns_text_blocks(self, stub_client):
        stub_client.reply = SimpleNamespace(content=[
            SimpleNamespace(type="text", text='{"title": '),
            SimpleNamespace(type="text", text='"a"}'),
        ])

        text = asyncio.run(llm.complete("prompt", max_tokens=100))

        assert text == '{"title": "a"}'
        assert stub_client.calls[0]["max_tokens"] == 100
        assert stub_client.calls[0]["messages"] == [{"role": "user", "content": "prompt"}]

    def test_provider_error_is_classified(self, stub_client):
        stub_client.error = status_error(anthropic.RateLimitError, 429)
        with pytest.raises(UpstreamRateLimited):
            asyncio.run(llm.complete("prompt"))

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(config, "ANTHROPIC_API_KEY", None)
        with pytest.raises(UpstreamAuthFailed):
            asyncio.run(llm.complete("prompt"))
