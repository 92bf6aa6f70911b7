"""Entrypoint: runs the indexer and the feed server in one process.

Any number of these processes may share one database. They coordinate only
through leases stored there.
"""

import asyncio
import signal

import httpx
import uvicorn
from dependency_injector import providers

from modindex.database.database import sessionmanager
from modindex.main.config import Settings, get_settings
from modindex.main.container import Container
from modindex.main.logging import get_logger
from modindex.server.main import get_application
from modindex.worker.indexer import run_indexer
from modindex.worker.shutdown import ShutdownSignal

logger = get_logger(__name__)


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.forge_request_timeout_seconds),
        follow_redirects=True,
    )


def install_signal_handlers(shutdown: ShutdownSignal) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set, f"received {sig.name}")


async def stop_server_on_shutdown(server: uvicorn.Server, shutdown: ShutdownSignal) -> None:
    await shutdown.wait()
    server.should_exit = True


async def serve(settings: Settings) -> None:
    sessionmanager.init(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )

    async with create_http_client(settings) as http_client:
        container = Container(
            settings=providers.Object(settings),
            session_manager=providers.Object(sessionmanager),
            http_client=providers.Object(http_client),
        )
        shutdown = container.shutdown()
        install_signal_handlers(shutdown)

        app = get_application(
            catalog_store=container.catalog_store(),
            feed_default_limit=settings.feed_default_limit,
        )
        server = uvicorn.Server(
            uvicorn.Config(app, host="0.0.0.0", port=settings.port, log_config=None)
        )

        logger.info(f"Serving feed on port {settings.port}")
        server_task = asyncio.create_task(server.serve())
        # Stop indexing once the feed server exits
        server_task.add_done_callback(lambda _: shutdown.set(reason="feed server stopped"))
        watcher_task = asyncio.create_task(stop_server_on_shutdown(server, shutdown))

        try:
            await run_indexer(container.repos_loop(), container.tag_workers(), shutdown)
        finally:
            shutdown.set(reason="indexer stopped")
            await asyncio.gather(server_task, watcher_task)
            await sessionmanager.close()


def main() -> None:
    settings = get_settings()
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
