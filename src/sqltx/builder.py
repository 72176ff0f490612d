"""
Small SQL builders producing `?` placeholder statements.

Every builder satisfies the `Sqlizer` protocol, which is the only contract
the executors require. Any object with a compatible `to_sql` method can be
passed in their place.
"""

from __future__ import annotations

from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
)

from sqltx.exception import BuildError

Predicate = Union[str, Mapping[str, Any], "Sqlizer"]


class Sqlizer(Protocol):
    def to_sql(self) -> Tuple[str, List[Any]]: ...


class Expr:
    """A literal piece of SQL with its arguments"""

    def __init__(self, sql: str, *args: Any) -> None:
        self.sql = sql
        self.args = list(args)

    def to_sql(self) -> Tuple[str, List[Any]]:
        return self.sql, list(self.args)

    def __repr__(self) -> str:
        return f"<Expr {self.sql!r}>"


def _value_sql(value: Any) -> Tuple[str, List[Any]]:
    if hasattr(value, "to_sql"):
        return value.to_sql()
    return "?", [value]


def _predicate_sql(
    pred: Predicate, args: Sequence[Any]
) -> Tuple[str, List[Any]]:
    if isinstance(pred, str):
        return pred, list(args)
    if isinstance(pred, Mapping):
        clauses: List[str] = []
        params: List[Any] = []
        for column, value in pred.items():
            if value is None:
                clauses.append(f"{column} IS NULL")
            elif isinstance(value, (list, tuple, set, frozenset)):
                if not value:
                    clauses.append("(1=0)")
                    continue
                marks = ",".join("?" for _ in value)
                clauses.append(f"{column} IN ({marks})")
                params.extend(value)
            else:
                sql, value_args = _value_sql(value)
                clauses.append(f"{column} = {sql}")
                params.extend(value_args)
        return " AND ".join(clauses), params
    if hasattr(pred, "to_sql"):
        return pred.to_sql()
    raise BuildError(f"Unsupported where predicate: {pred!r}")


class _WhereMixin:
    _wheres: List[Tuple[str, List[Any]]]

    def where(self, pred: Predicate, *args: Any):
        sql, params = _predicate_sql(pred, args)
        if sql:
            self._wheres.append((sql, params))
        return self

    def _where_sql(self) -> Tuple[str, List[Any]]:
        if not self._wheres:
            return "", []
        params: List[Any] = []
        for _, where_args in self._wheres:
            params.extend(where_args)
        if len(self._wheres) == 1:
            return f" WHERE {self._wheres[0][0]}", params
        clauses = " AND ".join(f"({sql})" for sql, _ in self._wheres)
        return f" WHERE {clauses}", params


class Select(_WhereMixin):
    def __init__(self, *columns: Union[str, Sqlizer]) -> None:
        self._columns = list(columns)
        self._from = ""
        self._wheres = []
        self._order_by: List[str] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._suffixes: List[Tuple[str, List[Any]]] = []

    def columns(self, *columns: Union[str, Sqlizer]) -> Select:
        self._columns.extend(columns)
        return self

    def from_(self, table: str) -> Select:
        self._from = table
        return self

    def order_by(self, *clauses: str) -> Select:
        self._order_by.extend(clauses)
        return self

    def limit(self, limit: int) -> Select:
        self._limit = limit
        return self

    def offset(self, offset: int) -> Select:
        self._offset = offset
        return self

    def suffix(self, sql: str, *args: Any) -> Select:
        self._suffixes.append((sql, list(args)))
        return self

    def to_sql(self) -> Tuple[str, List[Any]]:
        if not self._columns:
            raise BuildError(
                "select statements must have at least one result column"
            )
        params: List[Any] = []
        result_columns: List[str] = []
        for column in self._columns:
            if isinstance(column, str):
                result_columns.append(column)
                continue
            column_sql, column_args = column.to_sql()
            result_columns.append(column_sql)
            params.extend(column_args)
        sql = f"SELECT {', '.join(result_columns)}"
        if self._from:
            sql += f" FROM {self._from}"
        where_sql, where_args = self._where_sql()
        sql += where_sql
        params.extend(where_args)
        if self._order_by:
            sql += f" ORDER BY {', '.join(self._order_by)}"
        if self._limit is not None:
            sql += f" LIMIT {int(self._limit)}"
        if self._offset is not None:
            sql += f" OFFSET {int(self._offset)}"
        for suffix, suffix_args in self._suffixes:
            sql += f" {suffix}"
            params.extend(suffix_args)
        return sql, params


class Insert:
    def __init__(self, table: str) -> None:
        self._table = table
        self._columns: List[str] = []
        self._values: List[List[Any]] = []
        self._suffixes: List[Tuple[str, List[Any]]] = []

    def columns(self, *columns: str) -> Insert:
        self._columns.extend(columns)
        return self

    def values(self, *values: Any) -> Insert:
        self._values.append(list(values))
        return self

    def set_map(self, values: Mapping[str, Any]) -> Insert:
        self._columns = list(values.keys())
        self._values = [list(values.values())]
        return self

    def suffix(self, sql: str, *args: Any) -> Insert:
        self._suffixes.append((sql, list(args)))
        return self

    def to_sql(self) -> Tuple[str, List[Any]]:
        if not self._table:
            raise BuildError("insert statements must specify a table")
        if not self._values:
            raise BuildError(
                "insert statements must have at least one set of values"
            )
        params: List[Any] = []
        rows: List[str] = []
        for row in self._values:
            if self._columns and len(row) != len(self._columns):
                raise BuildError(
                    f"insert has {len(self._columns)} columns but "
                    f"{len(row)} values"
                )
            marks: List[str] = []
            for value in row:
                sql, value_args = _value_sql(value)
                marks.append(sql)
                params.extend(value_args)
            rows.append(f"({','.join(marks)})")
        sql = f"INSERT INTO {self._table} "
        if self._columns:
            sql += f"({','.join(self._columns)}) "
        sql += f"VALUES {','.join(rows)}"
        for suffix, suffix_args in self._suffixes:
            sql += f" {suffix}"
            params.extend(suffix_args)
        return sql, params


class Update(_WhereMixin):
    def __init__(self, table: str) -> None:
        self._table = table
        self._sets: List[Tuple[str, Any]] = []
        self._wheres = []
        self._suffixes: List[Tuple[str, List[Any]]] = []

    def set(self, column: str, value: Any) -> Update:
        self._sets.append((column, value))
        return self

    def set_map(self, values: Mapping[str, Any]) -> Update:
        for column, value in values.items():
            self.set(column, value)
        return self

    def suffix(self, sql: str, *args: Any) -> Update:
        self._suffixes.append((sql, list(args)))
        return self

    def set_clause(self) -> Tuple[str, List[Any]]:
        if not self._sets:
            raise BuildError(
                "update statements must have at least one Set clause"
            )
        clauses: List[str] = []
        params: List[Any] = []
        for column, value in self._sets:
            sql, value_args = _value_sql(value)
            clauses.append(f"{column} = {sql}")
            params.extend(value_args)
        return f"SET {', '.join(clauses)}", params

    def to_sql(self) -> Tuple[str, List[Any]]:
        if not self._table:
            raise BuildError("update statements must specify a table")
        set_sql, params = self.set_clause()
        sql = f"UPDATE {self._table} {set_sql}"
        where_sql, where_args = self._where_sql()
        sql += where_sql
        params.extend(where_args)
        for suffix, suffix_args in self._suffixes:
            sql += f" {suffix}"
            params.extend(suffix_args)
        return sql, params


class Delete(_WhereMixin):
    def __init__(self, table: str) -> None:
        self._table = table
        self._wheres = []

    def to_sql(self) -> Tuple[str, List[Any]]:
        if not self._table:
            raise BuildError("delete statements must specify a table")
        where_sql, params = self._where_sql()
        return f"DELETE FROM {self._table}{where_sql}", params


class CaseSum:
    """Conditional sum, for use as a result column"""

    def __init__(self, target: str, condition: str, *args: Any) -> None:
        self.target = target
        self.condition = condition
        self.args = list(args)

    def to_sql(self) -> Tuple[str, List[Any]]:
        return (
            f"COALESCE(SUM(CASE WHEN {self.condition} "
            f"THEN COALESCE({self.target},0) ELSE 0 END), 0)",
            list(self.args),
        )


class Upsert:
    """INSERT ... ON CONFLICT (keys) DO UPDATE for PostgreSQL and SQLite

    Example:

    ```python
    Upsert("table").key("id", 1234).set("data", "ASDF")
    ```
    """

    def __init__(self, into: str) -> None:
        self._into = into
        self._keys: List[Tuple[str, Any]] = []
        self._values: List[Tuple[str, Any]] = []
        self._update = Update("_")

    def key(self, column: str, value: Any) -> Upsert:
        self._keys.append((column, value))
        return self

    def set(self, column: str, value: Any) -> Upsert:
        self._values.append((column, value))
        return self

    def set_map(self, values: Dict[str, Any]) -> Upsert:
        for column, value in values.items():
            self.set(column, value)
        return self

    def where(self, pred: Predicate, *args: Any) -> Upsert:
        self._update.where(pred, *args)
        return self

    def to_sql(self) -> Tuple[str, List[Any]]:
        if not self._into:
            raise BuildError("upsert statements must specify a table")
        if not self._keys:
            raise BuildError("upsert statements must have at least one key")
        if not self._values:
            raise BuildError(
                "upsert statements must have at least one value"
            )

        seen = set()
        for column, _ in self._keys + self._values:
            if column in seen:
                raise BuildError(
                    f"duplicate column in keys and values: {column}"
                )
            seen.add(column)

        update = Update("_")
        update._wheres = list(self._update._wheres)
        for column, _ in self._values:
            update.set(column, Expr(f"EXCLUDED.{column}"))
        set_sql, set_args = update.set_clause()
        where_sql, where_args = update._where_sql()

        key_list = ",".join(column for column, _ in self._keys)
        insert = (
            Insert(self._into)
            .columns(*(column for column, _ in self._keys + self._values))
            .values(*(value for _, value in self._keys + self._values))
            .suffix(
                f"ON CONFLICT ({key_list}) DO UPDATE {set_sql}{where_sql}",
                *set_args,
                *where_args,
            )
        )
        return insert.to_sql()
