import httpx
from dependency_injector import containers, providers

from modindex.catalog.catalog_store import CatalogStore
from modindex.database.database import DatabaseSessionManager
from modindex.forge.forge_client import ForgeClient
from modindex.forge.graphql_transport import HttpxGraphQLTransport, graphql_endpoint
from modindex.leases.lease_store import LeaseStore
from modindex.main.config import Settings
from modindex.worker.indexer import build_repos_loop, build_tag_workers
from modindex.worker.shutdown import ShutdownSignal


class Container(containers.DeclarativeContainer):
    settings = providers.Dependency(instance_of=Settings)
    session_manager = providers.Dependency(instance_of=DatabaseSessionManager)
    http_client = providers.Dependency(instance_of=httpx.AsyncClient)

    shutdown = providers.Singleton(ShutdownSignal)

    # Stores
    lease_store = providers.Singleton(LeaseStore, session_manager=session_manager)
    catalog_store = providers.Singleton(CatalogStore, session_manager=session_manager)

    # Forge
    graphql_transport = providers.Singleton(
        HttpxGraphQLTransport,
        client=http_client,
        endpoint=providers.Callable(graphql_endpoint, settings.provided.forge_host_name),
        auth_token=settings.provided.forge_auth_token,
    )
    forge_client = providers.Singleton(
        ForgeClient,
        transport=graphql_transport,
        http_client=http_client,
        host_name=settings.provided.forge_host_name,
        auth_token=settings.provided.forge_auth_token,
        raw_use_https=settings.provided.forge_raw_use_https,
        repo_search_query=settings.provided.forge_repo_search_query,
        request_timeout_seconds=settings.provided.forge_request_timeout_seconds,
    )

    # Indexing
    repos_loop = providers.Factory(
        build_repos_loop,
        settings=settings,
        lease_store=lease_store,
        catalog_store=catalog_store,
        forge_client=forge_client,
        shutdown=shutdown,
    )
    tag_workers = providers.Factory(
        build_tag_workers,
        settings=settings,
        lease_store=lease_store,
        catalog_store=catalog_store,
        forge_client=forge_client,
        shutdown=shutdown,
    )
