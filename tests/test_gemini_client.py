"""Tests for the Gemini client model chain."""

import json

import httpx
import pytest

from card_studio.services.gemini_client import GeminiClient, GeminiError


def _ok(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def _client(handler, models=("gemini-a", "gemini-b")) -> GeminiClient:
    return GeminiClient(
        api_key="test-key",
        base_url="https://gemini.test/v1beta",
        models=list(models),
        transport=httpx.MockTransport(handler),
    )


class TestModelChain:
    """Each model is tried in order until one returns text."""

    @pytest.mark.asyncio
    async def test_first_model_succeeds(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return _ok("  Oferta imperdível!  ")

        text = await _client(handler).generate_content("prompt")

        assert text == "Oferta imperdível!"
        assert calls == ["/v1beta/models/gemini-a:generateContent"]

    @pytest.mark.asyncio
    async def test_falls_through_to_next_model(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            if "gemini-a" in request.url.path:
                return httpx.Response(429, json={"error": {"message": "quota"}})
            return _ok("Texto do segundo modelo")

        text = await _client(handler).generate_content("prompt")

        assert text == "Texto do segundo modelo"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_empty_candidates_count_as_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if "gemini-a" in request.url.path:
                return httpx.Response(200, json={"candidates": []})
            return _ok("ok")

        assert await _client(handler).generate_content("prompt") == "ok"

    @pytest.mark.asyncio
    async def test_all_models_fail(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="internal")

        with pytest.raises(GeminiError, match="All Gemini models failed") as exc_info:
            await _client(handler).generate_content("prompt")
        assert "gemini-a: HTTP 500" in str(exc_info.value)
        assert "gemini-b: HTTP 500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_malformed_json_moves_on(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if "gemini-a" in request.url.path:
                return httpx.Response(200, text="not json")
            return _ok("ok")

        assert await _client(handler).generate_content("prompt") == "ok"

    @pytest.mark.asyncio
    async def test_generation_config_sent(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(json.loads(request.content))
            seen["key"] = request.url.params["key"]
            return _ok("ok")

        await _client(handler).generate_content("prompt", temperature=0.8, max_output_tokens=300)

        assert seen["key"] == "test-key"
        assert seen["generationConfig"]["temperature"] == 0.8
        assert seen["generationConfig"]["maxOutputTokens"] == 300
        assert seen["contents"][0]["parts"][0]["text"] == "prompt"


class TestStatus:
    @pytest.mark.asyncio
    async def test_missing_key(self):
        client = GeminiClient(api_key=None)
        assert client.enabled is False
        with pytest.raises(GeminiError):
            await client.generate_content("prompt")
        assert (await client.check_status())["working"] is False

    @pytest.mark.asyncio
    async def test_check_status_working(self):
        status = await _client(lambda request: _ok("OK")).check_status()
        assert status["working"] is True
        assert status["models"] == ["gemini-a", "gemini-b"]

    @pytest.mark.asyncio
    async def test_list_models_strips_prefix(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"models": [{"name": "models/gemini-a"}, {"name": "models/gemini-b"}]})

        assert await _client(handler).list_models() == ["gemini-a", "gemini-b"]
