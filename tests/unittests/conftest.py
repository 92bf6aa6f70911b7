import pytest

from modindex.main.config import Settings, reset_settings


@pytest.fixture
def test_settings() -> Settings:
    """Explicit settings that do not depend on a .env file or environment variables."""
    return Settings(
        forge_host_name="github.example.com",
        forge_auth_token="unit-test-token",
        # Database settings (not used in unit tests)
        postgres_user="unit_test_user",
        postgres_host="localhost",
        postgres_password="unit_test_password",
        postgres_port=5432,
        postgres_db="unit_test_db",
        repo_tags_reindexing_workers=3,
    )


@pytest.fixture(autouse=True)
def reset_settings_after_test():
    """Reset settings after each test to prevent state leakage."""
    yield
    reset_settings()
