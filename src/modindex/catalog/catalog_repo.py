from datetime import datetime
from typing import Iterable, Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from modindex.catalog.repo_tag import RepoTag
from modindex.database.tables.repo_tags_table import RepoTags
from modindex.database.tables.repos_table import Repos

# asyncpg caps a statement at 32767 bind parameters
INSERT_BATCH_SIZE = 1000


def _batches(items: Sequence, size: int = INSERT_BATCH_SIZE) -> Iterable[Sequence]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class CatalogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert_repos(self, repo_ids: Sequence[str]) -> int:
        """Insert repos that are not known yet. Known repos are left untouched.

        Returns:
            Number of newly inserted repos.
        """
        inserted = 0
        for batch in _batches(repo_ids):
            stmt = (
                insert(Repos)
                .values([{"org_repo_name": repo_id} for repo_id in batch])
                .on_conflict_do_nothing(index_elements=[Repos.org_repo_name])
            )
            result = await self.session.execute(stmt)
            inserted += max(result.rowcount, 0)
        return inserted

    async def replace_repo_tags(self, repo_id: str, tags: Sequence[RepoTag]) -> None:
        """Make the stored tags of one repo exactly equal to `tags`.

        Must run inside the caller's transaction so readers never observe a
        half-replaced tag set.
        """
        await self.session.execute(
            sa.delete(RepoTags)
            .where(RepoTags.org_repo_name == repo_id)
            .execution_options(synchronize_session=False)
        )

        # A crawl can list one tag name twice across pages if it moved mid-crawl
        latest = list({tag.tag_name: tag for tag in tags}.values())

        for batch in _batches(latest):
            stmt = insert(RepoTags).values(
                [
                    {
                        "org_repo_name": tag.repo_id,
                        "tag_name": tag.tag_name,
                        "module_path": tag.module_path,
                        "created": tag.created,
                    }
                    for tag in batch
                ]
            )
            await self.session.execute(stmt)

    async def get_repo_tags(self, repo_id: str) -> list[RepoTag]:
        stmt = (
            sa.select(RepoTags)
            .where(RepoTags.org_repo_name == repo_id)
            .order_by(RepoTags.tag_name)
        )
        rows = (await self.session.scalars(stmt)).all()
        return [_to_repo_tag(row) for row in rows]

    async def fetch_repo_tags(self, since: datetime | None, limit: int) -> list[RepoTag]:
        """Tags for the feed, newest first.

        With `since`, the window starts at `since`: the `limit` oldest tags
        created at or after it. Without it, the `limit` newest tags. Tags
        created at the same time are ordered by repo and tag name either way.
        Tags without a date are never published.
        """
        dated = RepoTags.created.is_not(None)

        if since is None:
            stmt = (
                sa.select(RepoTags)
                .where(dated)
                .order_by(RepoTags.created.desc(), RepoTags.org_repo_name, RepoTags.tag_name)
                .limit(limit)
            )
            rows = (await self.session.scalars(stmt)).all()
            return [_to_repo_tag(row) for row in rows]

        window = (
            sa.select(RepoTags)
            .where(dated, RepoTags.created >= since)
            .order_by(
                RepoTags.created.asc(), RepoTags.org_repo_name.desc(), RepoTags.tag_name.desc()
            )
            .limit(limit)
        )
        rows = (await self.session.scalars(window)).all()
        return [_to_repo_tag(row) for row in reversed(rows)]


def _to_repo_tag(row: RepoTags) -> RepoTag:
    return RepoTag(
        repo_id=row.org_repo_name,
        tag_name=row.tag_name,
        module_path=row.module_path,
        created=row.created,
    )
