import random
from datetime import timedelta
from typing import Optional

from modindex.catalog.catalog_store import CatalogStore
from modindex.catalog.repo_tag import RepoTag
from modindex.forge.forge_client import ForgeClient
from modindex.forge.repo_ref import RepoRef
from modindex.leases.lease_store import LeaseStore
from modindex.main.exceptions import ModuleFileError, ShutdownRequestedError, UpstreamError
from modindex.main.log_context import set_log_context
from modindex.main.logging import get_logger
from modindex.worker.backoff import Backoff
from modindex.worker.reindex_repos import backoff_delay
from modindex.worker.shutdown import ShutdownSignal

logger = get_logger(__name__)


class TagReindexWorker:
    """Crawls the tags of one due repo at a time.

    Workers coordinate only through repo leases, so any number of them can
    run across any number of processes. A worker that finishes a repo asks
    for the next one straight away and only idles when nothing is due.
    """

    def __init__(
        self,
        worker_id: str,
        lease_store: LeaseStore,
        catalog_store: CatalogStore,
        forge_client: ForgeClient,
        shutdown: ShutdownSignal,
        backoff: Backoff,
        check_period_seconds: float,
        jitter_min_seconds: float,
        jitter_max_seconds: float,
        period_seconds: float,
        ttl_seconds: float,
        rng: Optional[random.Random] = None,
    ):
        self.worker_id = worker_id
        self.lease_store = lease_store
        self.catalog_store = catalog_store
        self.forge_client = forge_client
        self.shutdown = shutdown
        self.backoff = backoff
        self.check_period_seconds = check_period_seconds
        self.jitter_min_seconds = jitter_min_seconds
        self.jitter_max_seconds = jitter_max_seconds
        self.period = timedelta(seconds=period_seconds)
        self.ttl = timedelta(seconds=ttl_seconds)
        self._random = rng or random.Random()

    def idle_wait_seconds(self) -> float:
        # Jitter keeps idle workers from polling the store in lockstep
        return self.check_period_seconds + self._random.uniform(
            self.jitter_min_seconds, self.jitter_max_seconds
        )

    async def crawl_repo_tags(self, repo_id: str) -> list[RepoTag]:
        """All tags of a repo with resolved module paths.

        Tags whose go.mod cannot be trusted are left out.

        Raises:
            ShutdownRequestedError: shutdown was raised mid-crawl.
        """
        tags: list[RepoTag] = []
        skipped = 0

        async for remote_tag in self.forge_client.list_tags(repo_id):
            self.shutdown.raise_if_set()
            try:
                module_path = await self.forge_client.resolve_module_path(repo_id, remote_tag.name)
            except ModuleFileError as e:
                skipped += 1
                logger.warning(f"Skipping tag {remote_tag.name}: {e}")
                continue

            tags.append(
                RepoTag(
                    repo_id=repo_id,
                    tag_name=remote_tag.name,
                    module_path=module_path,
                    created=remote_tag.created,
                )
            )

        if skipped:
            logger.info(f"Skipped {skipped} tags with invalid go.mod files")
        return tags

    async def reindex_repo(self, repo_id: str) -> int:
        """Crawl and store the tags of a leased repo, finishing its lease.

        Returns:
            Number of tags stored.
        """
        try:
            RepoRef.parse(repo_id)
        except ValueError as e:
            # Not crawlable; finish the lease so it is not handed out again until due
            logger.error(f"Cannot reindex malformed repo id: {e}")
            await self.lease_store.finish_repo_lease(repo_id)
            return 0

        # An interrupted crawl is neither stored nor finished, its lease expires
        tags = await self.shutdown.interruptible(self.crawl_repo_tags(repo_id))
        if not tags:
            logger.info("Repo has no tags, keeping previously stored tags")

        await self.catalog_store.store_repo_tags(repo_id, tags)
        return len(tags)

    async def run_once(self) -> float:
        """One lease attempt, and a crawl if a repo was due.

        Returns:
            Seconds to wait before the next attempt, 0 after a finished repo.
        """
        try:
            repo_id = await self.lease_store.try_acquire_repo_lease(self.ttl, self.period)
            if repo_id is None:
                delay = self.idle_wait_seconds()
                logger.debug(f"No repo is due for tag reindexing, waiting {delay:.1f}s")
                return delay

            set_log_context(repo_id=repo_id)
            try:
                tag_count = await self.reindex_repo(repo_id)
                logger.info(
                    f"Reindexed {tag_count} tags",
                    extra={"tag_count": tag_count},
                )
            finally:
                set_log_context(repo_id=None)
            return 0.0

        except ShutdownRequestedError:
            logger.info("Tag crawl abandoned for shutdown")
            return 0.0

        except UpstreamError as e:
            # The repo lease is left to expire after its TTL
            delay = backoff_delay(self.backoff, e)
            logger.warning(
                f"Forge error while reindexing tags, backing off {delay:.1f}s",
                extra={"error": str(e)},
            )
            return delay

    async def run(self) -> None:
        set_log_context(worker_id=self.worker_id)
        logger.info("Starting tag reindexing worker")

        while not self.shutdown.is_set():
            delay = await self.run_once()
            if delay > 0 and await self.shutdown.sleep(delay):
                break

        logger.info("Tag reindexing worker stopped")
