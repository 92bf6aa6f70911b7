from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Zero value of Go's time.Time, returned by some forges for unset dates
ZERO_DATE = datetime(1, 1, 1, tzinfo=timezone.utc)


class ForgeModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PageInfo(ForgeModel):
    end_cursor: Optional[str] = Field(default=None, alias="endCursor")
    has_next_page: bool = Field(default=False, alias="hasNextPage")


# Repository search


class RepositoryNode(ForgeModel):
    # Empty for search results that are not repositories
    url: Optional[str] = None


class RepositoryEdge(ForgeModel):
    node: Optional[RepositoryNode] = None


class RepositorySearch(ForgeModel):
    edges: list[RepositoryEdge] = Field(default_factory=list)
    page_info: PageInfo = Field(alias="pageInfo")


class RepositorySearchData(ForgeModel):
    search: RepositorySearch


# Tags


class Tagger(ForgeModel):
    date: Optional[datetime] = None


class TagTarget(ForgeModel):
    """Target of a tag ref.

    Lightweight tags point at a commit and carry `committedDate`. Annotated
    tags point at a tag object and carry `tagger.date`.
    """

    committed_date: Optional[datetime] = Field(default=None, alias="committedDate")
    tagger: Optional[Tagger] = None


class TagNode(ForgeModel):
    name: str
    target: Optional[TagTarget] = None


class TagEdge(ForgeModel):
    node: TagNode


class TagRefs(ForgeModel):
    edges: list[TagEdge] = Field(default_factory=list)
    page_info: PageInfo = Field(alias="pageInfo")


class RepositoryRefs(ForgeModel):
    refs: Optional[TagRefs] = None


class RepositoryTagsData(ForgeModel):
    repository: Optional[RepositoryRefs] = None


@dataclass(frozen=True)
class RemoteTag:
    name: str
    created: Optional[datetime]


def _is_set(value: Optional[datetime]) -> bool:
    if value is None:
        return False
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value > ZERO_DATE


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_tag_date(target: Optional[TagTarget]) -> Optional[datetime]:
    """Creation date of a tag: commit date if set, else tagger date, else None."""
    if target is None:
        return None

    if _is_set(target.committed_date):
        return _as_utc(target.committed_date)

    tagger_date = target.tagger.date if target.tagger is not None else None
    if _is_set(tagger_date):
        return _as_utc(tagger_date)

    return None
