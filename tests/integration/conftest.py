"""Integration test fixtures using testcontainers for PostgreSQL."""

import os
from pathlib import Path
from typing import AsyncGenerator, Generator

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import text
from testcontainers.postgres import PostgresContainer

from modindex.database.database import DatabaseSessionManager
from modindex.main.config import Settings, reset_settings, set_settings

# Ryuk can have connection issues in nested Docker setups
os.environ.setdefault("TESTCONTAINERS_RYUK_DISABLED", "true")

if not os.getenv("DOCKER_HOST") and os.path.exists("/var/run/docker.sock"):
    os.environ["DOCKER_HOST"] = "unix:///var/run/docker.sock"

PROJECT_DIR = Path(__file__).parent.parent.parent


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """Start a PostgreSQL container for the test session."""

    postgres = PostgresContainer(
        image="postgres:16-alpine",
        username="integration_test_user",
        password="integration_test_password",
        dbname="integration_test_db",
    )
    with postgres:
        yield postgres


@pytest.fixture(scope="session")
def test_settings(postgres_container: PostgresContainer) -> Settings:
    """Create test settings using testcontainer connection strings."""

    return Settings(
        forge_host_name="github.example.com",
        forge_auth_token="integration-test-token",
        postgres_user="integration_test_user",
        postgres_host=postgres_container.get_container_host_ip(),
        postgres_password="integration_test_password",
        postgres_port=int(postgres_container.get_exposed_port(5432)),
        postgres_db="integration_test_db",
        db_pool_size=20,
    )


@pytest.fixture(scope="session", autouse=True)
def override_settings_for_session(test_settings: Settings):
    """Override global settings for the entire test session."""

    reset_settings()
    set_settings(test_settings)
    yield
    reset_settings()


@pytest.fixture(scope="session")
def migrated_database(test_settings: Settings) -> Settings:
    """Create the schema with the same migrations production runs."""

    alembic_cfg = Config(str(PROJECT_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("sqlalchemy.url", test_settings.sync_database_url)
    command.upgrade(alembic_cfg, "head")
    return test_settings


@pytest.fixture
async def session_manager(migrated_database: Settings) -> AsyncGenerator[DatabaseSessionManager, None]:
    """A session manager bound to the test loop; tables are reset after each test."""

    manager = DatabaseSessionManager()
    manager.init(migrated_database.database_url, pool_size=migrated_database.db_pool_size)

    yield manager

    async with manager.transaction() as session:
        await session.execute(text("TRUNCATE TABLE repo_tags, repos"))
        await session.execute(
            text(
                "UPDATE repo_indexing SET indexing_began = '-infinity', indexing_finished = '-infinity'"
            )
        )
    await manager.close()


@pytest.fixture
def set_repo_timestamps(session_manager: DatabaseSessionManager):
    """Set a repo's lease timestamps relative to now(), in days."""

    async def _set(repo_id: str, finished_days_ago: float, began_days_ago: float | None = None):
        if began_days_ago is None:
            began_days_ago = finished_days_ago
        async with session_manager.transaction() as session:
            await session.execute(
                text(
                    """
                    UPDATE repos
                    SET indexing_finished = now() - make_interval(secs => CAST(:finished AS double precision) * 86400),
                        indexing_began = now() - make_interval(secs => CAST(:began AS double precision) * 86400)
                    WHERE org_repo_name = :repo_id
                    """
                ),
                {"finished": finished_days_ago, "began": began_days_ago, "repo_id": repo_id},
            )

    return _set
