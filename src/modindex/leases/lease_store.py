"""Lease Store: TTL-bounded mutual exclusion over persistent rows.

There is no leader and no in-process queue: the database rows are the queue.
Any number of workers, in any number of processes, call these methods
concurrently; each call is one atomic conditional UPDATE in its own
transaction.

A lease may be (re)acquired when both hold:
    now - indexing_began    >= ttl     (the previous holder is presumed dead)
    now - indexing_finished >= period  (the work is due again)

Store errors are not caught here. A failing database means lost mutual
exclusion guarantees, so callers treat it as fatal.
"""

from datetime import timedelta

from modindex.database.database import DatabaseSessionManager
from modindex.leases.lease_repo import LeaseRepository
from modindex.main.logging import get_logger

logger = get_logger(__name__)


class LeaseStore:
    def __init__(self, session_manager: DatabaseSessionManager):
        self._session_manager = session_manager

    async def try_acquire_global_lease(self, ttl: timedelta, period: timedelta) -> bool:
        async with self._session_manager.transaction() as session:
            acquired = await LeaseRepository(session).try_acquire_global(ttl, period)

        logger.debug("Global lease acquisition attempted", extra={"acquired": acquired})
        return acquired

    async def finish_global_lease(self) -> None:
        async with self._session_manager.transaction() as session:
            await LeaseRepository(session).finish_global()

    async def try_acquire_repo_lease(self, ttl: timedelta, period: timedelta) -> str | None:
        """Returns the acquired repo id, or None when no repo is due."""
        async with self._session_manager.transaction() as session:
            return await LeaseRepository(session).try_acquire_repo(ttl, period)

    async def finish_repo_lease(self, repo_id: str) -> None:
        """Finish a repo lease without touching its tags.

        Storing tags finishes the lease in the same transaction (see
        CatalogStore.store_repo_tags), so this is only for repos that
        cannot be crawled at all.
        """
        async with self._session_manager.transaction() as session:
            await LeaseRepository(session).finish_repo(repo_id)
