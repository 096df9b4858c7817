"""
Unit tests for the text-generation client.
"""

import httpx
import pytest
import pytest_asyncio

from tutorcore.integrations.llm_client import LLMClient, extract_json_object


def _client(handler, base_url="http://llm.local"):
    return LLMClient(base_url=base_url, api_key="secret", transport=httpx.MockTransport(handler))


@pytest_asyncio.fixture
async def echo_client():
    """Client whose endpoint echoes the prompt back."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"text": "  What do you notice?  "})

    client = _client(handler)
    client.seen = seen
    yield client
    await client.close()


class TestExtractJson:
    def test_object_inside_prose(self):
        text = 'Sure! ```json\n{"category": "off_track", "nested": {"a": 1}}\n``` Hope that helps.'
        assert extract_json_object(text) == {"category": "off_track", "nested": {"a": 1}}

    def test_no_object(self):
        assert extract_json_object("no json here") is None

    def test_invalid_json(self):
        assert extract_json_object("{not: valid}") is None


class TestLLMClient:
    """Tests for LLMClient."""

    @pytest.mark.asyncio
    async def test_generate_strips_text(self, echo_client):
        assert await echo_client.generate("prompt", system="be kind") == "What do you notice?"

        request = echo_client.seen[0]
        assert request.url.path == "/generate"
        assert request.headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_server_error_returns_none(self):
        client = _client(lambda request: httpx.Response(503))
        try:
            assert await client.generate("prompt") is None
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_transport_error_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = _client(handler)
        try:
            assert await client.generate("prompt") is None
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_no_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        client = _client(handler)
        try:
            await client.generate("prompt")
        finally:
            await client.close()

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_missing_text_returns_none(self):
        client = _client(lambda request: httpx.Response(200, json={"output": "wrong key"}))
        try:
            assert await client.generate("prompt") is None
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_generate_json(self):
        client = _client(lambda request: httpx.Response(200, json={"text": 'Here: {"understandingLevel": "partial"}'}))
        try:
            assert await client.generate_json("prompt") == {"understandingLevel": "partial"}
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_generate_json_unparseable(self):
        client = _client(lambda request: httpx.Response(200, json={"text": "I think it's partial."}))
        try:
            assert await client.generate_json("prompt") is None
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_unconfigured_client_never_calls_out(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"text": "hi"})

        client = _client(handler, base_url=None)
        try:
            assert client.is_available is False
            assert await client.generate("prompt") is None
        finally:
            await client.close()

        assert calls == []
