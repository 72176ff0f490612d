from dataclasses import dataclass
from typing import Optional

import pytest

from sqltx.exception import MappingError, SchemaMismatch, UnmappedColumn
from sqltx.mapper import (
    bind_columns,
    column,
    column_names,
    embedded,
    insert_struct,
    map_fields,
    schema,
    update_struct,
)

from .records import Audit, Item


@dataclass
class Stamp:
    stamp_id: int = column("id", default=0)
    note: str = column("note", default="")


@dataclass
class Tagged:
    tag_id: int = column("id", default=0)
    note: str = column("note", default="tagged")
    label: str = column("label", default="")


@dataclass
class Document:
    stamp: Stamp = embedded(default_factory=Stamp)
    tagged: Tagged = embedded(default_factory=Tagged)
    doc_id: int = column("id", default=0)


@dataclass(frozen=True)
class Point:
    x: int = column("x", default=0)
    y: int = column("y", default=0)


@dataclass
class Short:
    item_id: int = column("item_id", default=0)


class Plain:
    item_id = 0


def test_column_names_in_declaration_order():
    assert column_names(Item) == ["item_id", "name", "created_by"]
    assert column_names(Item(), prefix="i.") == [
        "i.item_id",
        "i.name",
        "i.created_by",
    ]


def test_top_level_field_overrides_embedded():
    document = Document()
    fields = map_fields(document)
    fields["id"].set(7)
    assert document.doc_id == 7
    assert document.stamp.stamp_id == 0
    assert document.tagged.tag_id == 0


def test_first_embedded_writer_wins():
    document = Document()
    fields = map_fields(document)
    fields["note"].set("first")
    assert document.stamp.note == "first"
    assert document.tagged.note == "tagged"
    assert set(fields) == {"id", "note", "label"}


def test_without_override_first_writer_wins_everywhere():
    document = Document()
    map_fields(document, override=False)["id"].set(9)
    assert document.stamp.stamp_id == 9
    assert document.doc_id == 0


def test_none_embedded_is_allocated():
    item = Item(item_id=1, name="one")
    assert item.audit is None
    fields = map_fields(item)
    fields["created_by"].set("alice")
    assert item.audit == Audit(created_by="alice")


def test_item_id_resolves_to_outer_field():
    item = Item()
    map_fields(item)["item_id"].set(3)
    assert item.item_id == 3
    assert item.audit.item_id is None


def test_schema_is_cached():
    assert schema(Item) is schema(Item)
    assert schema(Item, False) is not schema(Item, True)


def test_frozen_record_is_populated():
    point = Point()
    refs = bind_columns(point, ["y", "x"])
    refs[0].set(2)
    refs[1].set(1)
    assert point == Point(x=1, y=2)


def test_unmapped_column():
    with pytest.raises(UnmappedColumn) as exc_info:
        bind_columns(Item(), ["item_id", "notes"])
    assert exc_info.value.column == "notes"
    assert "notes" in str(exc_info.value)


@pytest.mark.parametrize("target", (None, "string", Item, Plain()))
def test_non_record_targets(target):
    with pytest.raises(MappingError):
        map_fields(target)


def test_insert_struct():
    first = Item(item_id=1, name="one", audit=Audit(created_by="a"))
    second = Item(item_id=2, name="two")
    sql, args = insert_struct("items", first, second).to_sql()
    assert sql == (
        "INSERT INTO items (item_id,name,created_by) VALUES (?,?,?),(?,?,?)"
    )
    assert args == [1, "one", "a", 2, "two", None]
    assert second.audit == Audit()


def test_insert_struct_uses_first_writer():
    sql, args = insert_struct("documents", Document(doc_id=5)).to_sql()
    assert sql == "INSERT INTO documents (id,note,label) VALUES (?,?,?)"
    assert args == [0, "", ""]


def test_insert_struct_length_mismatch():
    with pytest.raises(SchemaMismatch, match="Length mismatch"):
        insert_struct("items", Item(), Short())


def test_update_struct():
    item = Item(item_id=4, name="four", audit=Audit(created_by="b"))
    sql, args = update_struct("items", item).where("item_id = ?", 4).to_sql()
    assert sql == (
        "UPDATE items SET item_id = ?, name = ?, created_by = ? "
        "WHERE item_id = ?"
    )
    assert args == [4, "four", "b", 4]


def test_optional_embedded_annotation():
    @dataclass
    class Wrapper:
        point: Optional[Point] = embedded(default=None)

    wrapper = Wrapper()
    map_fields(wrapper)["x"].set(5)
    assert wrapper.point == Point(x=5)
