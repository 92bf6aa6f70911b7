from typing import Any, Optional, Protocol

import httpx

from modindex.forge.forge_errors import raise_for_forge_status
from modindex.main.exceptions import (
    ForgeNotFoundError,
    RateLimitedError,
    UpstreamError,
)
from modindex.main.logging import get_logger

logger = get_logger(__name__)

PUBLIC_GITHUB_HOST = "github.com"
PUBLIC_GITHUB_GRAPHQL_ENDPOINT = "https://api.github.com/graphql"


def graphql_endpoint(host_name: str) -> str:
    if host_name == PUBLIC_GITHUB_HOST:
        return PUBLIC_GITHUB_GRAPHQL_ENDPOINT
    return f"https://{host_name}/api/graphql"


class GraphQLTransport(Protocol):
    async def execute(self, document: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run one GraphQL request and return its `data` object."""
        ...


class HttpxGraphQLTransport:
    def __init__(self, client: httpx.AsyncClient, endpoint: str, auth_token: str):
        self.client = client
        self.endpoint = endpoint
        self._headers = {"Authorization": f"bearer {auth_token}"}

    async def execute(self, document: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.client.post(
                self.endpoint,
                json={"query": document, "variables": variables},
                headers=self._headers,
            )
        except httpx.TimeoutException as e:
            raise UpstreamError(f"GraphQL request to {self.endpoint} timed out") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"GraphQL request to {self.endpoint} failed: {e}") from e

        raise_for_forge_status(response, action="running a GraphQL query")

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError("Forge returned a GraphQL response that is not JSON") from e

        if not isinstance(payload, dict):
            raise UpstreamError("Forge returned a malformed GraphQL response")

        _raise_for_graphql_errors(payload.get("errors"))

        data = payload.get("data")
        if not isinstance(data, dict):
            raise UpstreamError("Forge returned a GraphQL response without data")
        return data


def _raise_for_graphql_errors(errors: Optional[list]) -> None:
    if not errors:
        return

    types = {error.get("type") for error in errors if isinstance(error, dict)}
    messages = "; ".join(
        str(error.get("message", error)) if isinstance(error, dict) else str(error)
        for error in errors
    )

    if "RATE_LIMITED" in types:
        raise RateLimitedError(f"Rate limited by forge: {messages}")
    if "NOT_FOUND" in types:
        raise ForgeNotFoundError(messages)

    logger.warning("GraphQL query returned errors", extra={"error": messages})
    raise UpstreamError(f"GraphQL query failed: {messages}")
