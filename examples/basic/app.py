import asyncio
from dataclasses import dataclass

from sqltx import (
    CallbackLogger,
    Expr,
    Select,
    SQLitePool,
    Transaction,
    Transactor,
    Update,
    column,
)


@dataclass
class City:
    id: int = column("id", default=0)
    name: str = column("name", default="")
    countrycode: str = column("countrycode", default="")
    district: str = column("district", default="")
    population: int = column("population", default=0)


async def grow(tx: Transaction, city_id: int, by: int) -> City:
    await tx.update(
        Update("city")
        .set("population", Expr("population + ?", by))
        .where({"id": city_id})
    )
    row = await tx.select_row(
        Select("*").from_("city").where({"id": city_id})
    )
    return await row.scan_into(City())


async def run():
    async with SQLitePool(":memory:") as pool:
        transactor = Transactor(pool, query_logger=CallbackLogger(print))
        await transactor.exec_raw(
            "CREATE TABLE city (id INTEGER PRIMARY KEY, name TEXT, "
            "countrycode TEXT, district TEXT, population INTEGER)"
        )
        await transactor.insert_struct(
            "city",
            City(321, "Rotterdam", "NLD", "Zuid-Holland", 593321),
            City(322, "Utrecht", "NLD", "Utrecht", 234323),
        )
        print(await transactor.transact(lambda tx: grow(tx, 321, 1000)))


asyncio.run(run())
