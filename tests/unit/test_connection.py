"""
Unit tests for engine management.
"""

from sqlalchemy.pool import NullPool

from pgmq_consumer.db import close_engine, connection, create_engine, get_engine


class TestEngines:
    """Tests for engine creation and the shared engine."""

    async def test_unpooled_engine_uses_null_pool(self):
        engine = create_engine("postgresql+asyncpg://u:p@localhost:5432/db", pooled=False)

        assert isinstance(engine.pool, NullPool)
        assert engine.url.database == "db"
        await engine.dispose()

    async def test_shared_engine_is_reused_until_closed(self, monkeypatch):
        monkeypatch.setattr(connection, "_engine", None)

        first = get_engine()
        assert get_engine() is first

        await close_engine()

        assert connection._engine is None
        second = get_engine()
        assert second is not first
        await close_engine()
