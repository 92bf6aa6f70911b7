from datetime import datetime
from typing import Sequence

from modindex.catalog.catalog_repo import CatalogRepository
from modindex.catalog.repo_tag import RepoTag
from modindex.database.database import DatabaseSessionManager
from modindex.leases.lease_repo import LeaseRepository
from modindex.main.logging import get_logger

logger = get_logger(__name__)


class CatalogStore:
    """Write path for crawl results and read path for the feed.

    Writes are idempotent: storing the same crawl result twice leaves the
    catalog as if it was stored once.
    """

    def __init__(self, session_manager: DatabaseSessionManager):
        self._session_manager = session_manager

    async def store_repos(self, repo_ids: Sequence[str]) -> int:
        """Record discovered repos so they become eligible for tag indexing.

        Repos missing from `repo_ids` are not deleted.

        Returns:
            Number of repos that were not known before.
        """
        unique_repo_ids = sorted(set(repo_ids))
        if not unique_repo_ids:
            return 0

        async with self._session_manager.transaction() as session:
            inserted = await CatalogRepository(session).insert_repos(unique_repo_ids)

        logger.info(
            f"Stored {len(unique_repo_ids)} repos, {inserted} new",
            extra={"repo_count": len(unique_repo_ids), "new_repo_count": inserted},
        )
        return inserted

    async def store_repo_tags(self, repo_id: str, tags: Sequence[RepoTag]) -> None:
        """Replace the tags of `repo_id` and finish its lease, atomically.

        `tags` is authoritative: stored tags not in it are deleted. An empty
        `tags` leaves the stored tags untouched and only finishes the lease,
        so a repo without tags is not retried as if its worker had died.
        """
        foreign = [tag for tag in tags if tag.repo_id != repo_id]
        if foreign:
            raise ValueError(
                f"store_repo_tags for {repo_id} got tags of other repos: "
                f"{sorted({tag.repo_id for tag in foreign})}"
            )

        async with self._session_manager.transaction() as session:
            if tags:
                await CatalogRepository(session).replace_repo_tags(repo_id, tags)
            await LeaseRepository(session).finish_repo(repo_id)

    async def get_repo_tags(self, repo_id: str) -> list[RepoTag]:
        async with self._session_manager.session() as session, session.begin():
            return await CatalogRepository(session).get_repo_tags(repo_id)

    async def fetch_repo_tags(self, since: datetime | None, limit: int) -> list[RepoTag]:
        async with self._session_manager.session() as session, session.begin():
            return await CatalogRepository(session).fetch_repo_tags(since, limit)
