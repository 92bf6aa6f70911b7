from datetime import datetime, timezone

from pydantic import BaseModel, Field

from modindex.catalog.repo_tag import RepoTag

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(value: datetime) -> str:
    """RFC3339 in UTC, second precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


class FeedEntry(BaseModel):
    path: str = Field(serialization_alias="Path")
    version: str = Field(serialization_alias="Version")
    timestamp: str = Field(serialization_alias="Timestamp")

    @classmethod
    def from_repo_tag(cls, tag: RepoTag) -> "FeedEntry":
        return cls(
            path=tag.module_path,
            version=tag.tag_name,
            timestamp=format_timestamp(tag.created),
        )

    def to_json_line(self) -> str:
        return self.model_dump_json(by_alias=True)


class ErrorResponse(BaseModel):
    message: str
    error_code: int


class HealthResponse(BaseModel):
    status: str = "ok"
