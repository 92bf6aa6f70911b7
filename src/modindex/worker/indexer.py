import asyncio
import random
from typing import Awaitable, Optional

from modindex.catalog.catalog_store import CatalogStore
from modindex.forge.forge_client import ForgeClient
from modindex.leases.lease_store import LeaseStore
from modindex.main.config import Settings
from modindex.main.logging import get_logger
from modindex.worker.backoff import Backoff
from modindex.worker.reindex_repos import ReindexAllReposLoop
from modindex.worker.reindex_tags import TagReindexWorker
from modindex.worker.shutdown import ShutdownSignal

logger = get_logger(__name__)


def _forge_backoff(settings: Settings) -> Backoff:
    return Backoff(
        initial_seconds=settings.forge_backoff_initial_seconds,
        max_seconds=settings.forge_backoff_max_seconds,
        multiplier=settings.forge_backoff_multiplier,
    )


def build_repos_loop(
    settings: Settings,
    lease_store: LeaseStore,
    catalog_store: CatalogStore,
    forge_client: ForgeClient,
    shutdown: ShutdownSignal,
) -> ReindexAllReposLoop:
    return ReindexAllReposLoop(
        lease_store=lease_store,
        catalog_store=catalog_store,
        forge_client=forge_client,
        shutdown=shutdown,
        backoff=_forge_backoff(settings),
        check_period_seconds=settings.all_repos_reindex_check_period_seconds,
        period_seconds=settings.all_repos_reindex_period_seconds,
        ttl_seconds=settings.all_repos_reindex_ttl_seconds,
    )


def build_tag_workers(
    settings: Settings,
    lease_store: LeaseStore,
    catalog_store: CatalogStore,
    forge_client: ForgeClient,
    shutdown: ShutdownSignal,
    rng: Optional[random.Random] = None,
) -> list[TagReindexWorker]:
    return [
        TagReindexWorker(
            worker_id=f"tags-{index}",
            lease_store=lease_store,
            catalog_store=catalog_store,
            forge_client=forge_client,
            shutdown=shutdown,
            backoff=_forge_backoff(settings),
            check_period_seconds=settings.repo_tags_reindex_check_period_seconds,
            jitter_min_seconds=settings.repo_tags_reindex_jitter_min_seconds,
            jitter_max_seconds=settings.repo_tags_reindex_jitter_max_seconds,
            period_seconds=settings.repo_tags_reindex_period_seconds,
            ttl_seconds=settings.repo_tags_reindex_ttl_seconds,
            rng=rng,
        )
        for index in range(settings.repo_tags_reindexing_workers)
    ]


async def supervise(
    name: str,
    work: Awaitable[None],
    shutdown: ShutdownSignal,
    errors: list[BaseException],
) -> None:
    """Run one indexing task; a failure stops all of its siblings."""
    try:
        await work
    except Exception as e:
        logger.exception(f"{name} failed, stopping the indexer", extra={"error": str(e)})
        errors.append(e)
        shutdown.set(reason=f"{name} failed")
        raise


async def run_indexer(
    repos_loop: ReindexAllReposLoop,
    tag_workers: list[TagReindexWorker],
    shutdown: ShutdownSignal,
) -> None:
    """Run the repo list loop and the tag workers until shutdown.

    Raises:
        Exception: The first error that stopped a task, after every other
            task has drained.
    """
    errors: list[BaseException] = []

    tasks = [supervise("repo list loop", repos_loop.run(), shutdown, errors)]
    tasks.extend(
        supervise(f"tag worker {worker.worker_id}", worker.run(), shutdown, errors)
        for worker in tag_workers
    )

    logger.info(f"Starting indexer with {len(tag_workers)} tag workers")
    await asyncio.gather(*tasks, return_exceptions=True)

    if errors:
        raise errors[0]
    logger.info("Indexer stopped")
