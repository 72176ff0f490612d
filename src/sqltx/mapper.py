"""
Mapping between dataclass records and column names.

Fields are tagged with `column()` and embedded records with `embedded()`:

```python
@dataclass
class Audit:
    created_at: datetime = column("created_at", default=None)


@dataclass
class Item:
    item_id: int = column("item_id")
    name: str = column("name")
    audit: Audit = embedded(default_factory=Audit)
    notes: str = column("-", default="")
```

The column layout of a record class is computed once per class and cached.
Fields declared on the record itself take precedence over columns found
through embedded records, and within embedded records the first field
declared for a column wins.
"""

from __future__ import annotations

import dataclasses
import types
import typing
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union

from sqltx.builder import Insert, Update
from sqltx.exception import MappingError, SchemaMismatch, UnmappedColumn

SQL_TAG = "sql"
EMBED_TAG = "sql_embed"
SKIP = "-"


def column(name: str, **kwargs: Any) -> Any:
    """A dataclass field mapped to the column `name`. Use `"-"` to exclude
    the field explicitly."""
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[SQL_TAG] = name
    return dataclasses.field(metadata=metadata, **kwargs)


def embedded(**kwargs: Any) -> Any:
    """A dataclass field holding another record whose columns are merged
    into the outer record. The field may be `None`, in which case a record
    is created when the columns are mapped."""
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[EMBED_TAG] = True
    return dataclasses.field(metadata=metadata, **kwargs)


@dataclass(frozen=True)
class Step:
    attribute: str
    record_type: type


@dataclass(frozen=True)
class Binding:
    column: str
    path: Tuple[Step, ...]
    attribute: str


class FieldRef:
    """A reference to one field of one record instance"""

    __slots__ = ("owner", "attribute")

    def __init__(self, owner: Any, attribute: str) -> None:
        self.owner = owner
        self.attribute = attribute

    def get(self) -> Any:
        return getattr(self.owner, self.attribute)

    def set(self, value: Any) -> None:
        # frozen dataclasses are populated the same way their __init__ does
        object.__setattr__(self.owner, self.attribute, value)

    def __repr__(self) -> str:
        return f"<FieldRef {type(self.owner).__name__}.{self.attribute}>"


def _record_type(annotation: Any, owner: type, name: str) -> type:
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [
            arg for arg in typing.get_args(annotation) if arg is not type(None)
        ]
        if len(args) == 1:
            annotation = args[0]
    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        return annotation
    raise MappingError(
        f"Embedded field {owner.__name__}.{name} must be a dataclass, "
        f"got {annotation!r}"
    )


def _walk(
    cls: type,
    columns: Dict[str, Binding],
    override: bool,
    path: Tuple[Step, ...],
) -> None:
    for field in dataclasses.fields(cls):
        tag = field.metadata.get(SQL_TAG, "")
        if tag == SKIP:
            continue
        if field.metadata.get(EMBED_TAG):
            annotation = field.type
            if isinstance(annotation, str):
                annotation = typing.get_type_hints(cls)[field.name]
            record_type = _record_type(annotation, cls, field.name)
            _walk(
                record_type,
                columns,
                False,
                path + (Step(field.name, record_type),),
            )
            continue
        if not tag:
            continue
        if override or tag not in columns:
            columns[tag] = Binding(tag, path, field.name)


@lru_cache(maxsize=None)
def schema(cls: type, override: bool = True) -> Tuple[Binding, ...]:
    """The column bindings of a record class, in declaration order"""
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        raise MappingError(f"{cls!r} is not a dataclass")
    columns: Dict[str, Binding] = {}
    _walk(cls, columns, override, ())
    return tuple(columns.values())


def _require_record(record: Any, action: str) -> None:
    if isinstance(record, type) or not dataclasses.is_dataclass(record):
        raise MappingError(f"{action} requires a dataclass instance")


def zero(cls: type) -> Any:
    """An instance of `cls` built from field defaults, with `None` for
    fields that have none"""
    instance = cls.__new__(cls)
    for field in dataclasses.fields(cls):
        if field.default is not dataclasses.MISSING:
            value = field.default
        elif field.default_factory is not dataclasses.MISSING:
            value = field.default_factory()
        else:
            value = None
        object.__setattr__(instance, field.name, value)
    return instance


def _owner(record: Any, path: Tuple[Step, ...]) -> Any:
    owner = record
    for step in path:
        inner = getattr(owner, step.attribute)
        if inner is None:
            inner = zero(step.record_type)
            object.__setattr__(owner, step.attribute, inner)
        owner = inner
    return owner


def map_fields(record: Any, override: bool = True) -> Dict[str, FieldRef]:
    """Map each column name of the record to a reference to its field.

    Embedded records that are `None` are created and assigned in place.
    """
    _require_record(record, "map_fields")
    return {
        binding.column: FieldRef(
            _owner(record, binding.path), binding.attribute
        )
        for binding in schema(type(record), override)
    }


def column_names(
    record: Union[Any, Type[Any]], prefix: str = ""
) -> List[str]:
    cls = record if isinstance(record, type) else type(record)
    return [f"{prefix}{binding.column}" for binding in schema(cls, True)]


def bind_columns(record: Any, columns: Sequence[str]) -> List[FieldRef]:
    """The field references for each of the columns, in order"""
    _require_record(record, "scan_into")
    fields = map_fields(record, override=True)
    refs: List[FieldRef] = []
    for name in columns:
        ref = fields.get(name)
        if ref is None:
            raise UnmappedColumn(name)
        refs.append(ref)
    return refs


def assign(refs: Sequence[FieldRef], values: Sequence[Any]) -> None:
    if len(refs) != len(values):
        raise SchemaMismatch(
            f"Expected {len(refs)} values to scan, got {len(values)}"
        )
    for ref, value in zip(refs, values):
        ref.set(value)


def scan_into(src: Any, record: Any) -> Any:
    """Scan the current row of `src` (anything with `columns()` and
    `scan()`) into the record. Every column must have a matching field."""
    refs = bind_columns(record, src.columns())
    assign(refs, src.scan())
    return record


def insert_struct(table: str, *records: Any) -> Insert:
    """An insert of one row per record.

    Columns are taken from the first record. Every following record must
    map the same number of columns.
    """
    builder = Insert(table)
    names: List[str] = []
    for index, record in enumerate(records):
        _require_record(record, "insert_struct")
        fields = map_fields(record, override=False)
        if index == 0:
            names = list(fields)
        elif len(names) != len(fields):
            raise SchemaMismatch(
                f"Length mismatch on types: record {index} maps "
                f"{len(fields)} columns, expected {len(names)}"
            )
        values: List[Optional[Any]] = []
        for name in names:
            ref = fields.get(name)
            values.append(ref.get() if ref is not None else None)
        builder.values(*values)
    builder.columns(*names)
    return builder


def update_struct(table: str, record: Any) -> Update:
    """An update setting every mapped column of the record. Add the where
    clause before executing it."""
    _require_record(record, "update_struct")
    builder = Update(table)
    for name, ref in map_fields(record, override=True).items():
        builder.set(name, ref.get())
    return builder
