"""Unit tests for GraphQL transport error mapping."""

import json

import httpx
import pytest

from modindex.forge.graphql_transport import HttpxGraphQLTransport, graphql_endpoint
from modindex.main.exceptions import (
    ForgeError,
    ForgeNotFoundError,
    RateLimitedError,
    UpstreamError,
)

ENDPOINT = "https://github.example.com/api/graphql"


def transport_returning(response: httpx.Response, requests: list | None = None) -> HttpxGraphQLTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return response

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpxGraphQLTransport(client=client, endpoint=ENDPOINT, auth_token="secret")


def test_enterprise_endpoint():
    assert graphql_endpoint("github.example.com") == ENDPOINT


def test_public_github_endpoint():
    assert graphql_endpoint("github.com") == "https://api.github.com/graphql"


@pytest.mark.asyncio
async def test_returns_data_and_sends_query_with_bearer_token():
    requests = []
    transport = transport_returning(httpx.Response(200, json={"data": {"ok": True}}), requests)

    data = await transport.execute("query { ok }", {"after": None})

    assert data == {"ok": True}
    assert requests[0].headers["Authorization"] == "bearer secret"
    assert json.loads(requests[0].content) == {"query": "query { ok }", "variables": {"after": None}}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response, error",
    [
        (httpx.Response(429, headers={"retry-after": "60"}), RateLimitedError),
        (httpx.Response(403, text="API rate limit exceeded"), RateLimitedError),
        (httpx.Response(403, headers={"x-ratelimit-remaining": "0"}), RateLimitedError),
        (httpx.Response(502), UpstreamError),
        (httpx.Response(503), UpstreamError),
        (httpx.Response(401), ForgeError),
        (httpx.Response(403, text="forbidden"), ForgeError),
        (httpx.Response(200, text="not json"), UpstreamError),
        (httpx.Response(200, json=["not", "an", "object"]), UpstreamError),
        (httpx.Response(200, json={"data": None}), UpstreamError),
        (
            httpx.Response(200, json={"errors": [{"type": "RATE_LIMITED", "message": "slow"}]}),
            RateLimitedError,
        ),
        (
            httpx.Response(
                200,
                json={"data": {"repository": None}, "errors": [{"type": "NOT_FOUND", "message": "gone"}]},
            ),
            ForgeNotFoundError,
        ),
        (httpx.Response(200, json={"errors": [{"message": "Something went wrong"}]}), UpstreamError),
    ],
    ids=[
        "429",
        "403-rate-limit-text",
        "403-remaining-zero",
        "502",
        "503",
        "401",
        "403-forbidden",
        "not-json",
        "not-object",
        "no-data",
        "graphql-rate-limited",
        "graphql-not-found",
        "graphql-error",
    ],
)
async def test_error_mapping(response, error):
    transport = transport_returning(response)

    with pytest.raises(error) as exc_info:
        await transport.execute("query { ok }", {})

    assert type(exc_info.value) is error


@pytest.mark.asyncio
async def test_retry_after_is_kept():
    transport = transport_returning(httpx.Response(429, headers={"retry-after": "60"}))

    with pytest.raises(RateLimitedError) as exc_info:
        await transport.execute("query { ok }", {})

    assert exc_info.value.retry_after == 60


@pytest.mark.asyncio
async def test_timeout_is_an_upstream_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    transport = HttpxGraphQLTransport(client=client, endpoint=ENDPOINT, auth_token="secret")

    with pytest.raises(UpstreamError):
        await transport.execute("query { ok }", {})
