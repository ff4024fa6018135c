# followup/storage/base.py
"""Generic collection store interface.

Business code only needs equality / inequality / range filters, ordering
and a limit over named collections, so that is all the contract offers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
from datetime import date, datetime
import json

from followup.core.logging import get_logger

logger = get_logger(__name__)

Row = Dict[str, Any]

OPERATORS = ("eq", "neq", "in", "is_null", "not_null", "gt", "gte", "lt", "lte")


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for datetime and date objects."""

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.isoformat()
        return super().default(obj)


@dataclass(frozen=True)
class Filter:
    field: str
    op: str = "eq"
    value: Any = None

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def matches(self, row: Row) -> bool:
        current = row.get(self.field)
        if self.op == "is_null":
            return current is None
        if self.op == "not_null":
            return current is not None
        if self.op == "eq":
            return current == self.value
        if self.op == "neq":
            return current != self.value
        if self.op == "in":
            return current in self.value
        if current is None:
            return False
        if self.op == "gt":
            return current > self.value
        if self.op == "gte":
            return current >= self.value
        if self.op == "lt":
            return current < self.value
        return current <= self.value


def eq(field: str, value: Any) -> Filter:
    return Filter(field, "eq", value)


def is_in(field: str, values: Iterable[Any]) -> Filter:
    return Filter(field, "in", tuple(values))


def is_null(field: str) -> Filter:
    return Filter(field, "is_null")


def to_row(values: Dict[str, Any]) -> Row:
    """Round-trip through JSON so rows only hold plain JSON types."""
    return json.loads(json.dumps(values, cls=JSONEncoder))


class Store(ABC):
    """Abstract base class for all store implementations.

    Implementations raise ``PersistenceError`` when the backend fails.
    """

    @abstractmethod
    def select(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        """Rows of ``collection`` matching every filter."""
        pass

    @abstractmethod
    def insert(self, collection: str, row: Row) -> Row:
        """Append a row and return it as stored."""
        pass

    @abstractmethod
    def update(self, collection: str, filters: Iterable[Filter], values: Row) -> int:
        """Set ``values`` on matching rows; return how many changed."""
        pass

    def first(self, collection: str, filters: Iterable[Filter] = ()) -> Optional[Row]:
        rows = self.select(collection, filters, limit=1)
        return rows[0] if rows else None

    def close(self):
        """Release backend resources."""
        pass
