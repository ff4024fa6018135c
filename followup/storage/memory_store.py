# followup/storage/memory_store.py
"""In-process store, used for tests and as the JSON store's working set."""

import copy
from typing import Dict, Iterable, List, Optional

from followup.core.exceptions import PersistenceError
from followup.storage.base import Filter, Row, Store, to_row


class MemoryStore(Store):
    """Store keeping every collection as an insertion-ordered list of rows."""

    def __init__(self, seed: Optional[Dict[str, List[Row]]] = None):
        self._collections: Dict[str, List[Row]] = {}
        for name, rows in (seed or {}).items():
            self._collections[name] = [to_row(r) for r in rows]

    def _rows(self, collection: str) -> List[Row]:
        return self._collections.setdefault(collection, [])

    def select(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        filters = list(filters)
        results = [r for r in self._rows(collection) if all(f.matches(r) for f in filters)]

        if order_by:
            present = [r for r in results if r.get(order_by) is not None]
            missing = [r for r in results if r.get(order_by) is None]
            present.sort(key=lambda r: r[order_by], reverse=descending)
            results = present + missing

        if limit is not None:
            results = results[:limit]

        return copy.deepcopy(results)

    def insert(self, collection: str, row: Row) -> Row:
        try:
            stored = to_row(row)
        except (TypeError, ValueError) as e:
            raise PersistenceError(str(e), collection) from e
        self._rows(collection).append(stored)
        self._persist(collection)
        return copy.deepcopy(stored)

    def update(self, collection: str, filters: Iterable[Filter], values: Row) -> int:
        filters = list(filters)
        try:
            changes = to_row(values)
        except (TypeError, ValueError) as e:
            raise PersistenceError(str(e), collection) from e

        count = 0
        for row in self._rows(collection):
            if all(f.matches(row) for f in filters):
                row.update(changes)
                count += 1
        if count:
            self._persist(collection)
        return count

    def _persist(self, collection: str):
        """Hook for subclasses that write through to disk."""
        pass
