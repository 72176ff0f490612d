import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from sqltx import pgenv
from sqltx.convert import FORMAT
from sqltx.exception import ConfigError, SqltxError
from sqltx.pgenv import DatabaseConfig
from sqltx.transaction import Transactor


@pytest.fixture
def pg_pool():
    return AsyncMock()


@pytest.fixture(autouse=True)
def mock_pool_class(monkeypatch, pg_pool):
    mock = MagicMock(return_value=pg_pool)
    monkeypatch.setattr(pgenv, "PostgresPool", mock)
    monkeypatch.setattr(pgenv, "PING_INTERVAL", 0.01)
    return mock


def test_from_env_defaults():
    config = DatabaseConfig.from_env({"POSTGRES_URL": "postgres://db/app"})
    assert config == DatabaseConfig(
        url="postgres://db/app", max_open_conns=10, ping_timeout=10.0
    )


def test_from_env_values():
    config = DatabaseConfig.from_env(
        {
            "POSTGRES_URL": "postgres://db/app",
            "POSTGRES_MAX_OPEN_CONNS": "25",
            "POSTGRES_PING_TIMEOUT_SECONDS": "3",
        }
    )
    assert config.max_open_conns == 25
    assert config.ping_timeout == 3.0


def test_from_env_reads_process_environment(monkeypatch):
    monkeypatch.setenv("POSTGRES_URL", "postgres://env/app")
    assert DatabaseConfig.from_env().url == "postgres://env/app"


def test_from_env_requires_url():
    with pytest.raises(ConfigError, match="POSTGRES_URL"):
        DatabaseConfig.from_env({})


@pytest.mark.parametrize("value", ("many", "0"))
def test_from_env_invalid_number(value):
    with pytest.raises(ConfigError, match="POSTGRES_MAX_OPEN_CONNS"):
        DatabaseConfig.from_env(
            {
                "POSTGRES_URL": "postgres://db/app",
                "POSTGRES_MAX_OPEN_CONNS": value,
            }
        )


async def test_open_postgres_waits_for_ping(
    mock_pool_class, pg_pool, caplog
):
    pg_pool.ping.side_effect = [OSError("starting up"), None]
    config = DatabaseConfig(url="postgres://db/app", max_open_conns=3)

    with caplog.at_level(logging.INFO, logger="sqltx.pgenv"):
        pool = await config.open_postgres()

    assert pool is pg_pool
    mock_pool_class.assert_called_once_with(
        "postgres://db/app", min_size=1, max_size=3, timeout=10.0
    )
    assert pg_pool.ping.await_count == 2
    messages = [record.getMessage() for record in caplog.records]
    assert "pinging PG: starting up" in messages
    assert "connected to PG" in messages
    pg_pool.close.assert_not_awaited()


async def test_open_postgres_times_out(pg_pool):
    pg_pool.ping.side_effect = OSError("down")
    config = DatabaseConfig(url="postgres://db/app", ping_timeout=0.05)

    with pytest.raises(SqltxError):
        await config.open_postgres()
    pg_pool.close.assert_awaited_once()


async def test_open_postgres_transactor(pg_pool):
    config = DatabaseConfig(url="postgres://db/app")
    transactor = await config.open_postgres_transactor(retry_count=2)
    assert isinstance(transactor, Transactor)
    assert transactor.connection is pg_pool
    assert transactor.placeholder is FORMAT
    assert transactor.retry_count == 2
