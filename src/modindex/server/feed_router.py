import re
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from modindex.catalog.catalog_store import CatalogStore
from modindex.main.exceptions import BadRequestException
from modindex.server.feed_models import FeedEntry, HealthResponse

router = APIRouter()

NDJSON_MEDIA_TYPE = "application/x-ndjson"

RFC3339_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)


def parse_since(value: str) -> datetime:
    """Parse an RFC3339 timestamp.

    Raises:
        BadRequestException: `value` is not RFC3339.
    """
    match = RFC3339_RE.match(value)
    if match is None:
        raise BadRequestException(f"since must be an RFC3339 timestamp, got {value!r}")

    offset = match["offset"]
    if offset in ("Z", "z"):
        offset = "+00:00"
    # datetime has microsecond precision
    fraction = f".{match['fraction'][:6]}" if match["fraction"] else ""

    try:
        return datetime.fromisoformat(f"{match['date']}T{match['time']}{fraction}{offset}")
    except ValueError as e:
        raise BadRequestException(f"since must be an RFC3339 timestamp, got {value!r}") from e


def parse_limit(value: str) -> int:
    try:
        limit = int(value)
    except ValueError as e:
        raise BadRequestException(f"limit must be an integer, got {value!r}") from e
    if limit < 1:
        raise BadRequestException(f"limit must be at least 1, got {limit}")
    return limit


def get_catalog_store(request: Request) -> CatalogStore:
    return request.app.state.catalog_store


def render_feed(entries: list[FeedEntry]) -> str:
    return "\n".join(entry.to_json_line() for entry in entries)


@router.get(
    "/",
    response_class=Response,
    summary="Module version feed",
    description=(
        "Module versions ordered by creation time, newest first. One JSON object per line. "
        "With `since`, the `limit` versions created at or nearest after `since` are returned."
    ),
    responses={200: {"content": {NDJSON_MEDIA_TYPE: {}}}, 400: {"description": "Bad query"}},
)
async def get_feed(
    request: Request,
    since: Optional[str] = None,
    limit: Optional[str] = None,
    catalog_store: CatalogStore = Depends(get_catalog_store),
):
    since_at = parse_since(since) if since else None
    row_limit = parse_limit(limit) if limit else request.app.state.feed_default_limit

    tags = await catalog_store.fetch_repo_tags(since=since_at, limit=row_limit)
    entries = [FeedEntry.from_repo_tag(tag) for tag in tags if tag.created is not None]

    return Response(content=render_feed(entries), media_type=NDJSON_MEDIA_TYPE)


@router.get("/healthz", response_model=HealthResponse)
async def healthz():
    return HealthResponse()
