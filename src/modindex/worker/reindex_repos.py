from datetime import timedelta

from modindex.catalog.catalog_store import CatalogStore
from modindex.forge.forge_client import ForgeClient
from modindex.leases.lease_store import LeaseStore
from modindex.main.exceptions import RateLimitedError, ShutdownRequestedError, UpstreamError
from modindex.main.logging import get_logger
from modindex.worker.backoff import Backoff
from modindex.worker.shutdown import ShutdownSignal

logger = get_logger(__name__)


def backoff_delay(backoff: Backoff, error: UpstreamError) -> float:
    """Next backoff pause, stretched to honour a forge-provided retry-after."""
    delay = backoff.pause()
    if isinstance(error, RateLimitedError) and error.retry_after is not None:
        delay = max(delay, error.retry_after)
    return delay


class ReindexAllReposLoop:
    """Keeps the list of known repos in sync with the forge.

    At most one process crawls the repo list at a time, guarded by the
    global lease. All other processes find the lease taken and wait.
    """

    def __init__(
        self,
        lease_store: LeaseStore,
        catalog_store: CatalogStore,
        forge_client: ForgeClient,
        shutdown: ShutdownSignal,
        backoff: Backoff,
        check_period_seconds: float,
        period_seconds: float,
        ttl_seconds: float,
    ):
        self.lease_store = lease_store
        self.catalog_store = catalog_store
        self.forge_client = forge_client
        self.shutdown = shutdown
        self.backoff = backoff
        self.check_period_seconds = check_period_seconds
        self.period = timedelta(seconds=period_seconds)
        self.ttl = timedelta(seconds=ttl_seconds)

    async def _list_repositories(self) -> list[str]:
        repo_ids = []
        async for repo_id in self.forge_client.list_repositories():
            self.shutdown.raise_if_set()
            repo_ids.append(repo_id)
        return repo_ids

    async def reindex_all_repos(self) -> int:
        """Crawl the repo list and record it. Caller must hold the global lease.

        Returns:
            Number of repos listed by the forge.
        """
        repo_ids = await self.shutdown.interruptible(self._list_repositories())

        if repo_ids:
            await self.catalog_store.store_repos(repo_ids)
        else:
            logger.warning("Forge listed no repositories, nothing stored")

        await self.lease_store.finish_global_lease()
        return len(repo_ids)

    async def run_once(self) -> float:
        """One lease attempt, and a crawl if the lease was won.

        Returns:
            Seconds to wait before the next attempt.
        """
        try:
            if not await self.lease_store.try_acquire_global_lease(self.ttl, self.period):
                logger.debug("Repo list is not due for reindexing")
                return self.check_period_seconds

            logger.info("Reindexing all repos")
            repo_count = await self.reindex_all_repos()
            logger.info(
                f"Finished reindexing all repos: {repo_count} listed",
                extra={"repo_count": repo_count},
            )
            return self.check_period_seconds

        except ShutdownRequestedError:
            # The global lease is left to expire after its TTL
            logger.info("Repo list crawl abandoned for shutdown")
            return 0.0

        except UpstreamError as e:
            delay = backoff_delay(self.backoff, e)
            logger.warning(
                f"Forge error while reindexing repos, backing off {delay:.1f}s",
                extra={"error": str(e)},
            )
            return delay

    async def run(self) -> None:
        logger.info(
            "Starting repo list reindexing loop",
            extra={
                "check_period_seconds": self.check_period_seconds,
                "period_seconds": self.period.total_seconds(),
                "ttl_seconds": self.ttl.total_seconds(),
            },
        )
        while not self.shutdown.is_set():
            delay = await self.run_once()
            if await self.shutdown.sleep(delay):
                break
        logger.info("Repo list reindexing loop stopped")
