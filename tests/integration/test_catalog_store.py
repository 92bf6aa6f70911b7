"""Catalog writes and the feed query against a real PostgreSQL."""

from datetime import datetime, timedelta, timezone

import pytest
import sqlalchemy as sa

from modindex.catalog.catalog_store import CatalogStore
from modindex.catalog.repo_tag import RepoTag
from modindex.database.tables import Repos
from modindex.leases.lease_store import LeaseStore

pytestmark = pytest.mark.integration

T1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T2 = datetime(2024, 1, 3, tzinfo=timezone.utc)
T3 = datetime(2024, 1, 5, tzinfo=timezone.utc)
T_MID = datetime(2024, 1, 2, tzinfo=timezone.utc)


async def stored_repo_ids(session_manager) -> list[str]:
    async with session_manager.session() as session, session.begin():
        return list((await session.scalars(sa.select(Repos.org_repo_name).order_by(Repos.org_repo_name))).all())


def tag(repo_id: str, name: str, created=T1, module_path: str | None = None) -> RepoTag:
    return RepoTag(repo_id, name, module_path or f"github.example.com/{repo_id}", created)


class TestStoreRepos:
    @pytest.mark.asyncio
    async def test_storing_repos_is_idempotent(self, session_manager):
        catalog = CatalogStore(session_manager)

        assert await catalog.store_repos(["corp/a", "corp/b"]) == 2
        assert await catalog.store_repos(["corp/b", "corp/a"]) == 0

        assert await stored_repo_ids(session_manager) == ["corp/a", "corp/b"]

    @pytest.mark.asyncio
    async def test_unobserved_repos_are_kept(self, session_manager):
        catalog = CatalogStore(session_manager)

        await catalog.store_repos(["corp/a", "corp/b"])
        assert await catalog.store_repos(["corp/b", "corp/c"]) == 1

        assert await stored_repo_ids(session_manager) == ["corp/a", "corp/b", "corp/c"]

    @pytest.mark.asyncio
    async def test_duplicates_within_one_listing(self, session_manager):
        assert await CatalogStore(session_manager).store_repos(["corp/a", "corp/a"]) == 1

    @pytest.mark.asyncio
    async def test_large_listing_is_stored_in_batches(self, session_manager):
        repo_ids = [f"corp/repo-{i:05d}" for i in range(2500)]

        assert await CatalogStore(session_manager).store_repos(repo_ids) == 2500


class TestStoreRepoTags:
    @pytest.mark.asyncio
    async def test_tag_set_is_replaced(self, session_manager):
        catalog = CatalogStore(session_manager)
        await catalog.store_repos(["corp/a"])

        await catalog.store_repo_tags("corp/a", [tag("corp/a", "A"), tag("corp/a", "B")])
        await catalog.store_repo_tags(
            "corp/a",
            [tag("corp/a", "B", module_path="example.com/moved"), tag("corp/a", "C", created=None)],
        )

        assert await catalog.get_repo_tags("corp/a") == [
            tag("corp/a", "B", module_path="example.com/moved"),
            tag("corp/a", "C", created=None),
        ]

    @pytest.mark.asyncio
    async def test_storing_the_same_tags_twice_is_idempotent(self, session_manager):
        catalog = CatalogStore(session_manager)
        await catalog.store_repos(["corp/a"])
        tags = [tag("corp/a", "v1.0.0"), tag("corp/a", "v1.1.0", created=T2)]

        await catalog.store_repo_tags("corp/a", tags)
        await catalog.store_repo_tags("corp/a", tags)

        assert await catalog.get_repo_tags("corp/a") == tags

    @pytest.mark.asyncio
    async def test_repeated_tag_name_keeps_the_last_one(self, session_manager):
        catalog = CatalogStore(session_manager)
        await catalog.store_repos(["corp/a"])

        await catalog.store_repo_tags(
            "corp/a",
            [tag("corp/a", "v1.0.0"), tag("corp/a", "v1.0.0", created=T2)],
        )

        assert await catalog.get_repo_tags("corp/a") == [tag("corp/a", "v1.0.0", created=T2)]

    @pytest.mark.asyncio
    async def test_no_tags_keeps_existing_tags(self, session_manager):
        catalog = CatalogStore(session_manager)
        await catalog.store_repos(["corp/a"])
        await catalog.store_repo_tags("corp/a", [tag("corp/a", "v1.0.0")])

        await catalog.store_repo_tags("corp/a", [])

        assert await catalog.get_repo_tags("corp/a") == [tag("corp/a", "v1.0.0")]

    @pytest.mark.asyncio
    async def test_other_repos_are_untouched(self, session_manager):
        catalog = CatalogStore(session_manager)
        await catalog.store_repos(["corp/a", "corp/b"])
        await catalog.store_repo_tags("corp/b", [tag("corp/b", "v1.0.0")])

        await catalog.store_repo_tags("corp/a", [tag("corp/a", "v2.0.0")])

        assert await catalog.get_repo_tags("corp/b") == [tag("corp/b", "v1.0.0")]

    @pytest.mark.asyncio
    async def test_storing_tags_finishes_the_repo_lease(self, session_manager):
        catalog = CatalogStore(session_manager)
        leases = LeaseStore(session_manager)
        await catalog.store_repos(["corp/a"])
        assert await leases.try_acquire_repo_lease(timedelta(0), timedelta(days=1)) == "corp/a"

        await catalog.store_repo_tags("corp/a", [tag("corp/a", "v1.0.0")])

        assert await leases.try_acquire_repo_lease(timedelta(0), timedelta(days=1)) is None


class TestFetchRepoTags:
    @pytest.fixture
    async def catalog(self, session_manager) -> CatalogStore:
        catalog = CatalogStore(session_manager)
        await catalog.store_repos(["corp/a", "corp/b"])
        await catalog.store_repo_tags("corp/a", [tag("corp/a", "v1", T1), tag("corp/a", "v3", T3)])
        await catalog.store_repo_tags(
            "corp/b", [tag("corp/b", "v2", T2), tag("corp/b", "undated", created=None)]
        )
        return catalog

    @pytest.mark.asyncio
    async def test_newest_first_without_since(self, catalog):
        tags = await catalog.fetch_repo_tags(since=None, limit=10)

        assert [t.tag_name for t in tags] == ["v3", "v2", "v1"]

    @pytest.mark.asyncio
    async def test_limit_without_since_keeps_the_newest(self, catalog):
        tags = await catalog.fetch_repo_tags(since=None, limit=2)

        assert [t.tag_name for t in tags] == ["v3", "v2"]

    @pytest.mark.asyncio
    async def test_since_selects_the_nearest_tags_after_it(self, catalog):
        tags = await catalog.fetch_repo_tags(since=T_MID, limit=1)

        assert [t.tag_name for t in tags] == ["v2"]

    @pytest.mark.asyncio
    async def test_since_is_inclusive_and_results_newest_first(self, catalog):
        tags = await catalog.fetch_repo_tags(since=T2, limit=10)

        assert [t.tag_name for t in tags] == ["v3", "v2"]

    @pytest.mark.asyncio
    async def test_since_after_everything_is_empty(self, catalog):
        assert await catalog.fetch_repo_tags(since=T3 + timedelta(seconds=1), limit=10) == []

    @pytest.mark.asyncio
    async def test_tags_created_together_are_ordered_alike_with_and_without_since(self, session_manager):
        catalog = CatalogStore(session_manager)
        await catalog.store_repos(["corp/x", "corp/y"])
        await catalog.store_repo_tags(
            "corp/x", [tag("corp/x", "v1.0.0", created=T2), tag("corp/x", "v1.1.0", created=T2)]
        )
        await catalog.store_repo_tags("corp/y", [tag("corp/y", "v1.0.0", created=T2)])
        expected = [("corp/x", "v1.0.0"), ("corp/x", "v1.1.0"), ("corp/y", "v1.0.0")]

        latest = await catalog.fetch_repo_tags(since=None, limit=10)
        window = await catalog.fetch_repo_tags(since=T1, limit=10)

        assert [(t.repo_id, t.tag_name) for t in latest] == expected
        assert [(t.repo_id, t.tag_name) for t in window] == expected
