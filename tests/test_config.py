import pytest

from storefront.config import Settings


@pytest.mark.parametrize("url", [
    "postgres://shop:secret@db:5432/storefront",
    "postgresql://shop:secret@db:5432/storefront",
])
def test_database_urls_pick_the_driver(url):
    config = Settings()
    config.POSTGRES_CONNECTION_STRING = url

    assert config.DATABASE_URL == "postgresql+asyncpg://shop:secret@db:5432/storefront"
    assert config.SYNC_DATABASE_URL == "postgresql://shop:secret@db:5432/storefront"


def test_engine_uses_asyncpg_without_fallback():
    from storefront.database import engine

    assert engine.url.drivername == "postgresql+asyncpg"


def test_production_flag():
    config = Settings()
    config.ENVIRONMENT = "production"
    assert config.is_production
    config.ENVIRONMENT = "development"
    assert not config.is_production
