import asyncio
from unittest.mock import AsyncMock

import pytest

from sqltx.transaction import Transactor

from .fakes import FakeConnection


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def transactor(connection):
    return Transactor(connection, retry_count=4)


@pytest.fixture
def driver_cursor():
    cursor = AsyncMock()
    cursor.description = [("value",)]
    cursor.fetchone = AsyncMock(side_effect=[(1,), None])
    return cursor


@pytest.fixture
def cancel_current_task():
    def cancel():
        task = asyncio.current_task()
        assert task is not None
        task.cancel()

    return cancel
