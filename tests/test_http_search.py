import json

import httpx
import pytest

from chat_session_toolkit.exceptions import SearchServiceError
from chat_session_toolkit.retriever.http_search import HTTPSearchRetriever

ENDPOINT = "https://search.example.net"


def _hit(title: str, chunk: str = "content", **overrides):
    hit = {"title": title, "chunk": chunk, "culture": "en-US", "path": f"https://docs/{title}", "size": 1024}
    hit.update(overrides)
    return hit


def _retriever(handler, top_k: int = 5) -> HTTPSearchRetriever:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HTTPSearchRetriever(ENDPOINT + "/", "handbook", api_key="secret", top_k=top_k, client=client)


@pytest.mark.asyncio
async def test_request_shape():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"value": []})

    await _retriever(handler, top_k=3).retrieve("leave policy")

    [request] = requests
    assert request.method == "POST"
    assert request.url.path == "/indexes/handbook/docs/search"
    assert request.url.params["api-version"] == "2024-11-01-preview"
    assert request.headers["api-key"] == "secret"
    body = json.loads(request.content)
    assert body["search"] == "leave policy"
    assert body["top"] == 3
    assert body["queryType"] == "semantic"


@pytest.mark.asyncio
async def test_hits_become_sources():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"value": [_hit("Policy.pdf", "25 days"), _hit("Other.docx")]})

    sources = await _retriever(handler).retrieve("leave")

    assert [s.title for s in sources] == ["Policy.pdf", "Other.docx"]
    assert sources[0].chunk == "25 days"
    assert sources[0].culture == "en-US"
    assert sources[0].url == "https://docs/Policy.pdf"
    assert sources[0].size == 1024


@pytest.mark.asyncio
async def test_incomplete_hits_are_dropped():
    incomplete = _hit("NoSize.pdf")
    del incomplete["size"]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"value": [incomplete, _hit("Blank.pdf", chunk="   "), "garbage", _hit("Good.pdf")]}
        )

    sources = await _retriever(handler).retrieve("q")
    assert [s.title for s in sources] == ["Good.pdf"]


@pytest.mark.asyncio
async def test_http_error_is_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "unavailable"})

    with pytest.raises(httpx.HTTPStatusError):
        await _retriever(handler).retrieve("q")


@pytest.mark.asyncio
async def test_malformed_payload_is_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": []})

    with pytest.raises(SearchServiceError):
        await _retriever(handler).retrieve("q")


@pytest.mark.asyncio
async def test_exists():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/indexes/handbook/stats"
        return httpx.Response(200, json={"documentCount": 3})

    assert await _retriever(handler).exists() is True


@pytest.mark.asyncio
async def test_exists_when_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route to host", request=request)

    assert await _retriever(handler).exists() is False


@pytest.mark.asyncio
async def test_aclose_closes_the_client():
    retriever = _retriever(lambda request: httpx.Response(200, json={"value": []}))
    await retriever.aclose()
    assert retriever.client.is_closed
