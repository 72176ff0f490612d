"""Environment driven PostgreSQL bootstrap.

```python
config = DatabaseConfig.from_env()
transactor = await config.open_postgres_transactor()
```
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from sqltx.convert import FORMAT
from sqltx.exception import ConfigError, SqltxError
from sqltx.sql.postgres.interface import PostgresPool
from sqltx.transaction import Transactor

logger = logging.getLogger(__name__)

PING_INTERVAL = 1.0


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name}: expected an integer, got {raw!r}") from e
    if value < 1:
        raise ConfigError(f"{name}: must be at least 1, got {value}")
    return value


@dataclass
class DatabaseConfig:
    url: str
    max_open_conns: int = 10
    ping_timeout: float = 10.0

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> DatabaseConfig:
        """Read the configuration from `POSTGRES_URL`,
        `POSTGRES_MAX_OPEN_CONNS` and `POSTGRES_PING_TIMEOUT_SECONDS`.

        Raises:
            ConfigError: `POSTGRES_URL` is unset or a number is invalid
        """
        if environ is None:
            environ = os.environ
        url = environ.get("POSTGRES_URL", "")
        if not url:
            raise ConfigError("POSTGRES_URL: required")
        return cls(
            url=url,
            max_open_conns=_int_setting(
                environ, "POSTGRES_MAX_OPEN_CONNS", 10
            ),
            ping_timeout=float(
                _int_setting(environ, "POSTGRES_PING_TIMEOUT_SECONDS", 10)
            ),
        )

    async def open_postgres(self) -> PostgresPool:
        """Open a pool and wait until the server answers a ping, trying once
        a second for up to `ping_timeout` seconds."""
        pool = PostgresPool(
            self.url,
            min_size=1,
            max_size=self.max_open_conns,
            timeout=self.ping_timeout,
        )
        await pool.open()
        try:
            async with asyncio.timeout(self.ping_timeout):
                while True:
                    try:
                        await pool.ping()
                        break
                    except Exception as e:
                        logger.error("pinging PG: %s", e)
                        await asyncio.sleep(PING_INTERVAL)
        except TimeoutError as e:
            await pool.close()
            raise SqltxError(
                f"no answer from PG within {self.ping_timeout:g}s"
            ) from e
        except BaseException:
            await pool.close()
            raise

        logger.info("connected to PG")
        return pool

    async def open_postgres_transactor(self, **kwargs) -> Transactor:
        pool = await self.open_postgres()
        return Transactor(pool, FORMAT, **kwargs)
