# followup/storage/postgrest_store.py
"""Store backed by a hosted PostgREST endpoint (Supabase ``/rest/v1``)."""

from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx

from followup.core.exceptions import PersistenceError
from followup.core.logging import get_logger
from followup.storage.base import Filter, Row, Store, to_row

logger = get_logger(__name__)


def _literal(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    return str(value)


def _quoted(value: Any) -> str:
    text = _literal(value)
    if any(ch in text for ch in ',()" '):
        text = '"' + text.replace('"', '\\"') + '"'
    return text


def filter_params(filters: Iterable[Filter]) -> List[Tuple[str, str]]:
    """Translate filters into PostgREST query parameters."""
    params: List[Tuple[str, str]] = []
    for f in filters:
        if f.op == "is_null":
            params.append((f.field, "is.null"))
        elif f.op == "not_null":
            params.append((f.field, "not.is.null"))
        elif f.op == "in":
            params.append((f.field, "in.(" + ",".join(_quoted(v) for v in f.value) + ")"))
        else:
            params.append((f.field, f"{f.op}.{_literal(f.value)}"))
    return params


class PostgrestStore(Store):
    """Synchronous PostgREST client; every call is bounded by ``timeout``."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 15.0, client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        if not self.base_url.endswith("/rest/v1"):
            self.base_url = f"{self.base_url}/rest/v1"
        self._client = client or httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
        )

    def _request(self, method: str, collection: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, f"/{collection}", **kwargs)
        except httpx.HTTPError as e:
            raise PersistenceError(f"{method} {collection}: {e}", collection) from e

        if response.status_code >= 400:
            raise PersistenceError(
                f"{method} {collection} returned {response.status_code}: {response.text[:200]}",
                collection,
            )
        return response

    def select(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        params = [("select", "*")] + filter_params(filters)
        if order_by:
            direction = "desc" if descending else "asc"
            params.append(("order", f"{order_by}.{direction}.nullslast"))
        if limit is not None:
            params.append(("limit", str(limit)))

        response = self._request("GET", collection, params=params)
        return response.json() or []

    def insert(self, collection: str, row: Row) -> Row:
        response = self._request(
            "POST",
            collection,
            json=to_row(row),
            headers={"Prefer": "return=representation"},
        )
        created = response.json()
        if isinstance(created, list):
            return created[0] if created else to_row(row)
        return created

    def update(self, collection: str, filters: Iterable[Filter], values: Row) -> int:
        filters = list(filters)
        if not filters:
            raise PersistenceError("Refusing unfiltered update", collection)
        response = self._request(
            "PATCH",
            collection,
            params=filter_params(filters),
            json=to_row(values),
            headers={"Prefer": "return=representation"},
        )
        updated = response.json()
        return len(updated) if isinstance(updated, list) else 0

    def close(self):
        self._client.close()
