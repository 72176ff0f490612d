from __future__ import annotations

from typing import Callable, List, Protocol


class PlaceholderFormat(Protocol):
    def replace_placeholders(self, sql: str) -> str: ...


def replace_positional(sql: str, render: Callable[[int], str]) -> str:
    """Replace each `?` in the statement with a rendered placeholder.

    A doubled `??` is an escaped literal question mark and is emitted as a
    single `?`.
    """
    parts: List[str] = []
    position = 0
    count = 0
    while True:
        index = sql.find("?", position)
        if index == -1:
            break
        if sql[index + 1 : index + 2] == "?":
            parts.append(sql[position : index + 1])
            position = index + 2
            continue
        count += 1
        parts.append(sql[position:index])
        parts.append(render(count))
        position = index + 1
    parts.append(sql[position:])
    return "".join(parts)


class Question:
    """Leaves `?` placeholders as they are (SQLite, MySQL)"""

    def replace_placeholders(self, sql: str) -> str:
        return sql


class Dollar:
    """Numbered `$1, $2, ...` placeholders (asyncpg, lib/pq)"""

    def replace_placeholders(self, sql: str) -> str:
        return replace_positional(sql, lambda n: f"${n}")


class Colon:
    """Numbered `:1, :2, ...` placeholders (Oracle)"""

    def replace_placeholders(self, sql: str) -> str:
        return replace_positional(sql, lambda n: f":{n}")


class AtP:
    """Numbered `@p1, @p2, ...` placeholders (SQL Server)"""

    def replace_placeholders(self, sql: str) -> str:
        return replace_positional(sql, lambda n: f"@p{n}")


class Format:
    """`%s` placeholders (psycopg). Literal `%` characters are doubled."""

    def replace_placeholders(self, sql: str) -> str:
        return replace_positional(sql.replace("%", "%%"), lambda _: "%s")


QUESTION = Question()
DOLLAR = Dollar()
COLON = Colon()
AT_P = AtP()
FORMAT = Format()
