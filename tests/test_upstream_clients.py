import json

import httpx
import pytest

from watchwise.errors import GeneratorTransportError, MalformedUpstreamResponse, MissingCredential, UpstreamUnavailable
from watchwise.services.youtube_client import DETAILS_BATCH_SIZE


class TestYouTubeClient:
    async def test_details_are_requested_in_batches(self, youtube_factory):
        seen = []

        def handler(request):
            ids = request.url.params["id"].split(",")
            seen.append(len(ids))
            return httpx.Response(200, json={"items": [{"id": vid} for vid in ids]})

        client = youtube_factory(handler)
        ids = [f"v{i}" for i in range(DETAILS_BATCH_SIZE + 7)]
        items = await client.fetch_video_details(ids)
        await client.aclose()

        assert seen == [DETAILS_BATCH_SIZE, 7]
        assert len(items) == len(ids)

    async def test_history_uses_configured_page_size(self, youtube_factory):
        seen = []

        def handler(request):
            seen.append(request.url.params["maxResults"])
            return httpx.Response(200, json={"items": [{"id": "a"}, "junk"]})

        client = youtube_factory(handler, overrides={"youtube_history_max_results": 25})
        items = await client.fetch_history("oauth")
        assert seen == ["25"]
        assert items == [{"id": "a"}]

    async def test_missing_api_key(self, youtube_factory):
        client = youtube_factory(lambda r: httpx.Response(200, json={}), overrides={"youtube_api_key": None})
        with pytest.raises(MissingCredential):
            await client.fetch_history("oauth")

    async def test_connection_failure(self, youtube_factory):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        with pytest.raises(UpstreamUnavailable) as excinfo:
            await youtube_factory(handler).fetch_history("oauth")
        assert excinfo.value.upstream == "youtube"

    async def test_non_json_body(self, youtube_factory):
        client = youtube_factory(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(UpstreamUnavailable):
            await client.fetch_history("oauth")


class TestLLMClient:
    async def test_returns_stripped_content(self, llm_factory, chat_reply):
        seen = []

        def handler(request):
            seen.append(request)
            return chat_reply("  hello  ")

        text = await llm_factory(handler).complete("system", "user", temperature=0.2)

        assert text == "hello"
        request = seen[0]
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer llm-test-key"
        assert json.loads(request.content)["temperature"] == 0.2

    async def test_non_success_status(self, llm_factory, chat_reply):
        with pytest.raises(UpstreamUnavailable) as excinfo:
            await llm_factory(lambda r: chat_reply("", 402)).complete("s", "u")
        assert not isinstance(excinfo.value, GeneratorTransportError)
        assert excinfo.value.message == "Text generation failed (HTTP 402)"

    async def test_timeout_is_transport_error(self, llm_factory):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        with pytest.raises(GeneratorTransportError):
            await llm_factory(handler).complete("s", "u")

    async def test_unexpected_payload(self, llm_factory):
        with pytest.raises(MalformedUpstreamResponse):
            await llm_factory(lambda r: httpx.Response(200, json={"choices": [{}]})).complete("s", "u")

    async def test_missing_api_key(self, llm_factory, chat_reply):
        llm = llm_factory(lambda r: chat_reply("x"), overrides={"llm_api_key": None})
        with pytest.raises(MissingCredential):
            await llm.complete("s", "u")
