from dataclasses import dataclass
from typing import Optional

from sqltx.mapper import column, embedded


@dataclass
class Audit:
    created_by: Optional[str] = column("created_by", default=None)
    item_id: Optional[int] = column("item_id", default=None)


@dataclass
class Item:
    item_id: int = column("item_id", default=0)
    name: str = column("name", default="")
    audit: Optional[Audit] = embedded(default=None)
    notes: str = column("-", default="")
    scratch: str = ""
