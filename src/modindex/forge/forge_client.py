import asyncio
from typing import Any, AsyncIterator, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from modindex.forge.forge_errors import is_rate_limited
from modindex.forge.forge_models import (
    RemoteTag,
    RepositorySearchData,
    RepositoryTagsData,
    resolve_tag_date,
)
from modindex.forge.graphql_transport import GraphQLTransport
from modindex.forge.modfile import ModFileError, check_module_path, parse_module_path
from modindex.forge.pagination import PAGE_SIZE, Page, paginate
from modindex.forge.repo_ref import RepoRef
from modindex.main.exceptions import (
    ForgeNotFoundError,
    ModuleFileError,
    RateLimitedError,
    UpstreamError,
)
from modindex.main.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

REPOSITORIES_QUERY = """
query Repositories($query: String!, $first: Int!, $after: String) {
  search(query: $query, type: REPOSITORY, first: $first, after: $after) {
    edges {
      node {
        ... on Repository {
          url
        }
      }
    }
    pageInfo {
      endCursor
      hasNextPage
    }
  }
}
"""

REPOSITORY_TAGS_QUERY = """
query RepositoryTags($owner: String!, $name: String!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $name) {
    refs(
      refPrefix: "refs/tags/"
      orderBy: {field: TAG_COMMIT_DATE, direction: DESC}
      first: $first
      after: $after
    ) {
      edges {
        node {
          name
          target {
            ... on Commit {
              committedDate
            }
            ... on Tag {
              tagger {
                date
              }
            }
          }
        }
      }
      pageInfo {
        endCursor
        hasNextPage
      }
    }
  }
}
"""


class ForgeClient:
    """Read-only access to repositories, tags and go.mod files on a GitHub forge.

    The client never retries. Rate limits and transient failures surface as
    `UpstreamError` so the caller can back off.
    """

    def __init__(
        self,
        transport: GraphQLTransport,
        http_client: httpx.AsyncClient,
        host_name: str,
        auth_token: str,
        raw_use_https: bool = True,
        repo_search_query: str = "language:golang",
        request_timeout_seconds: float = 10.0,
    ):
        self.transport = transport
        self.http_client = http_client
        self.host_name = host_name
        self.raw_use_https = raw_use_https
        self.repo_search_query = repo_search_query
        self.request_timeout_seconds = request_timeout_seconds
        self._auth_token = auth_token

    async def _execute(self, document: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            async with asyncio.timeout(self.request_timeout_seconds):
                return await self.transport.execute(document, variables)
        except TimeoutError as e:
            raise UpstreamError(
                f"GraphQL request exceeded {self.request_timeout_seconds}s"
            ) from e

    @staticmethod
    def _validate(model: type[ModelT], data: dict[str, Any]) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise UpstreamError(f"Malformed {model.__name__} payload from forge: {e}") from e

    def _repo_id_from_url(self, url: str) -> Optional[str]:
        prefix = f"https://{self.host_name}/"
        if not url.lower().startswith(prefix):
            return None
        try:
            return RepoRef.parse(url[len(prefix) :].rstrip("/")).full_name
        except ValueError:
            return None

    async def list_repositories(self) -> AsyncIterator[str]:
        """Yield `org/name` ids of every repository matching the search query."""

        async def fetch_page(cursor: Optional[str]) -> Page[str]:
            data = await self._execute(
                REPOSITORIES_QUERY,
                {"query": self.repo_search_query, "first": PAGE_SIZE, "after": cursor},
            )
            search = self._validate(RepositorySearchData, data).search
            logger.debug(f"Received {len(search.edges)} repo results from forge")
            return Page(
                items=[edge.node.url for edge in search.edges if edge.node and edge.node.url],
                end_cursor=search.page_info.end_cursor,
                has_next_page=search.page_info.has_next_page,
            )

        async for url in paginate(fetch_page):
            repo_id = self._repo_id_from_url(url)
            if repo_id is None:
                logger.warning(f"Skipping repository with unexpected URL: {url}")
                continue
            yield repo_id

    async def list_tags(self, repo_id: str) -> AsyncIterator[RemoteTag]:
        """Yield the tags of a repository, newest first.

        A repository the forge does not know yields no tags. If it disappears
        after the first page the crawl is incomplete and UpstreamError is raised.

        Raises:
            ValueError: `repo_id` is not `org/name`.
        """
        repo = RepoRef.parse(repo_id)

        async def fetch_page(cursor: Optional[str]) -> Page[RemoteTag]:
            try:
                data = await self._execute(
                    REPOSITORY_TAGS_QUERY,
                    {"owner": repo.org, "name": repo.name, "first": PAGE_SIZE, "after": cursor},
                )
                repository = self._validate(RepositoryTagsData, data).repository
                if repository is None:
                    raise ForgeNotFoundError(f"Repository {repo.full_name} not found")
            except ForgeNotFoundError as e:
                if cursor is None:
                    raise
                raise UpstreamError(
                    f"Repository {repo.full_name} disappeared after page {cursor!r}"
                ) from e
            if repository.refs is None:
                return Page()

            refs = repository.refs
            return Page(
                items=[
                    RemoteTag(name=edge.node.name, created=resolve_tag_date(edge.node.target))
                    for edge in refs.edges
                ],
                end_cursor=refs.page_info.end_cursor,
                has_next_page=refs.page_info.has_next_page,
            )

        try:
            async for tag in paginate(fetch_page):
                yield tag
        except ForgeNotFoundError:
            logger.info(f"Repository {repo.full_name} not found on forge, no tags")

    def go_mod_url(self, repo: RepoRef, tag_name: str) -> str:
        scheme = "https" if self.raw_use_https else "http"
        return (
            f"{scheme}://{self.host_name}/raw/{repo.org}/{repo.name}/"
            f"{quote(tag_name, safe='/')}/go.mod"
        )

    async def resolve_module_path(self, repo_id: str, tag_name: str) -> str:
        """Module path of a repository at a tag.

        The path declared in go.mod wins. Without a go.mod (or without a
        module directive in it) the path is `<host>/<org>/<name>`.

        Raises:
            ModuleFileError: go.mod exists but is unparseable or declares an
                invalid module path.
            UpstreamError: The file could not be fetched.
        """
        repo = RepoRef.parse(repo_id)
        fallback = repo.as_module_path(self.host_name)
        url = self.go_mod_url(repo, tag_name)

        try:
            async with asyncio.timeout(self.request_timeout_seconds):
                response = await self.http_client.get(
                    url, headers={"Authorization": f"token {self._auth_token}"}
                )
        except (TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamError(f"Fetching {url} timed out") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Fetching {url} failed: {e}") from e

        # Most repos have no go.mod at the root, so this is not an error
        if response.status_code == 404:
            return fallback

        if is_rate_limited(response):
            raise RateLimitedError(f"Rate limited by forge while fetching {url}")
        if response.status_code != 200:
            raise UpstreamError(
                f"Unexpected status code {response.status_code} while fetching {url}"
            )

        try:
            declared = parse_module_path(response.text)
        except ModFileError as e:
            raise ModuleFileError(
                f"go.mod of {repo.full_name} at {tag_name} is unparseable: {e}"
            ) from e

        if declared is None:
            return fallback

        try:
            check_module_path(declared)
        except ValueError as e:
            raise ModuleFileError(
                f"go.mod of {repo.full_name} at {tag_name} declares an invalid path: {e}"
            ) from e

        return declared
