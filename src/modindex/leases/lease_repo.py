from datetime import timedelta

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from modindex.database.tables.repo_indexing_table import RepoIndexing
from modindex.database.tables.repos_table import Repos


def _interval(value: timedelta):
    return sa.cast(sa.literal(value, sa.Interval), sa.Interval)


class LeaseRepository:
    """Atomic lease operations over the repo_indexing and repos tables.

    Every method is a single UPDATE statement. The lease predicate lives in
    the WHERE clause, so PostgreSQL re-evaluates it on the latest row version
    when two callers race for the same row: only one of them gets the row.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _is_eligible(table, ttl: timedelta, period: timedelta):
        now = sa.func.now()
        return sa.and_(
            table.indexing_began <= now - _interval(ttl),
            table.indexing_finished <= now - _interval(period),
        )

    async def try_acquire_global(self, ttl: timedelta, period: timedelta) -> bool:
        """Mark the all-repos lease as begun if its ttl and period have elapsed.

        Returns:
            True if this caller now holds the lease.
        """
        stmt = (
            sa.update(RepoIndexing)
            .where(self._is_eligible(RepoIndexing, ttl, period))
            .values(indexing_began=sa.func.now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def finish_global(self) -> None:
        stmt = (
            sa.update(RepoIndexing)
            .values(indexing_finished=sa.func.now())
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def try_acquire_repo(self, ttl: timedelta, period: timedelta) -> str | None:
        """Mark the most overdue eligible repo as begun.

        The candidate with the oldest indexing_finished wins, ties broken by
        repo name. Rows locked by a concurrent acquirer are skipped rather
        than waited on.

        Returns:
            The "org/name" of the acquired repo, or None if no repo is eligible.
        """
        eligible = self._is_eligible(Repos, ttl, period)
        candidate = (
            sa.select(Repos.org_repo_name)
            .where(eligible)
            .order_by(Repos.indexing_finished.asc(), Repos.org_repo_name.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            sa.update(Repos)
            .where(Repos.org_repo_name == candidate)
            .where(eligible)
            .values(indexing_began=sa.func.now())
            .returning(Repos.org_repo_name)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def finish_repo(self, repo_id: str) -> None:
        stmt = (
            sa.update(Repos)
            .where(Repos.org_repo_name == repo_id)
            .values(indexing_finished=sa.func.now())
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
