from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from modindex.catalog.catalog_store import CatalogStore
from modindex.database.database import sessionmanager
from modindex.main.config import get_settings
from modindex.main.logging import get_logger
from modindex.server.exception_handlers import add_exception_handlers
from modindex.server.feed_router import router as feed_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    owns_database = not sessionmanager.is_initialized
    if app.state.catalog_store is None:
        settings = get_settings()
        sessionmanager.init(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
        app.state.catalog_store = CatalogStore(sessionmanager)
    else:
        owns_database = False

    yield

    if owns_database:
        await sessionmanager.close()


def get_application(
    catalog_store: Optional[CatalogStore] = None,
    feed_default_limit: Optional[int] = None,
) -> FastAPI:
    """Build the feed app.

    Without a `catalog_store`, the app opens its own database connection on
    startup.
    """
    app = FastAPI(title="modindex", lifespan=lifespan)
    app.state.catalog_store = catalog_store
    app.state.feed_default_limit = feed_default_limit or get_settings().feed_default_limit

    app.include_router(feed_router)
    add_exception_handlers(app)

    return app
