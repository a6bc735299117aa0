"""
Client-side list queries

A ``ListQuery`` holds the last snapshot fetched from a list endpoint and
answers search/filter/sort/page requests against it in memory. A failed
refresh keeps the previous snapshot and records the error so a caller can
show a banner next to stale data.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from helix.client.fetch_client import FetchClient, UpstreamFetchError

logger = logging.getLogger(__name__)

UNSPECIFIED = "unspecified"

# closed enumerations; anything else is reported as unspecified
ENUM_FIELDS = {
    "priority": ("critical", "high", "medium", "low"),
    "impactLevel": ("high", "medium", "low"),
}


@dataclass
class Page:
    items: List[Dict[str, Any]]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page else 1

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


@dataclass
class QueryState:
    loading: bool = False
    error: Optional[UpstreamFetchError] = None
    last_refreshed: Optional[datetime] = None

    @property
    def banner(self) -> Optional[str]:
        if self.error is None:
            return None
        return f"Showing cached data: {self.error.message}"


def enum_value(field_name: str, value: Any) -> Any:
    allowed = ENUM_FIELDS.get(field_name)
    if allowed is None:
        return value
    v = str(value or "").strip().lower()
    return v if v in allowed else UNSPECIFIED


def _sort_key(value: Any):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return (1, str(value).lower(), 0)
    return (0, "", value)


class ListQuery:
    def __init__(
        self,
        client: FetchClient,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        search_fields: Sequence[str] = ("title",),
        data_key: Optional[str] = None,
    ) -> None:
        self.client = client
        self.path = path
        self.params = dict(params or {})
        self.search_fields = tuple(search_fields)
        self.data_key = data_key
        self.items: List[Dict[str, Any]] = []
        self.state = QueryState()

    async def refresh(self, force: bool = False) -> List[Dict[str, Any]]:
        """Fetch a new snapshot; on failure keep the old one and record the error."""
        self.state.loading = True
        try:
            payload = await self.client.get(self.path, self.params, use_cache=not force)
        except UpstreamFetchError as exc:
            logger.warning("Refresh of %s failed, keeping %s cached rows: %s", self.path, len(self.items), exc)
            self.state.error = exc
            return self.items
        finally:
            self.state.loading = False

        if self.data_key and isinstance(payload, dict):
            payload = payload.get(self.data_key, [])
        rows = payload or []
        if not isinstance(rows, list) or not all(isinstance(row, Mapping) for row in rows):
            exc = UpstreamFetchError(
                200, f"expected a list of records, got {type(rows).__name__}", "GET", self.path
            )
            logger.warning(
                "Refresh of %s returned an unexpected payload, keeping %s cached rows", self.path, len(self.items)
            )
            self.state.error = exc
            return self.items
        self.items = [dict(row) for row in rows]
        for row in self.items:
            for name in ENUM_FIELDS:
                if name in row:
                    row[name] = enum_value(name, row[name])
        self.state.error = None
        self.state.last_refreshed = datetime.now()
        return self.items

    def _matches(self, row: Mapping[str, Any], search: str, filters: Mapping[str, Any]) -> bool:
        if search:
            needle = search.strip().lower()
            haystack = []
            for name in self.search_fields:
                value = row.get(name)
                if isinstance(value, (list, tuple)):
                    haystack.extend(str(v) for v in value)
                elif value is not None:
                    haystack.append(str(value))
            if not any(needle in text.lower() for text in haystack):
                return False
        for name, wanted in filters.items():
            if wanted in (None, "", "all"):
                continue
            value = row.get(name)
            if isinstance(wanted, (set, list, tuple)):
                if value not in wanted:
                    return False
            elif isinstance(value, str) and isinstance(wanted, str):
                if value.lower() != wanted.lower():
                    return False
            elif value != wanted:
                return False
        return True

    def view(
        self,
        search: str = "",
        filters: Optional[Mapping[str, Any]] = None,
        sort_by: Optional[str] = None,
        descending: bool = False,
        page: int = 1,
        per_page: int = 20,
    ) -> Page:
        rows = [row for row in self.items if self._matches(row, search, filters or {})]
        if sort_by:
            # rows without the field stay at the end in either direction
            present = [r for r in rows if r.get(sort_by) is not None]
            missing = [r for r in rows if r.get(sort_by) is None]
            present.sort(key=lambda r: _sort_key(r.get(sort_by)), reverse=descending)
            rows = present + missing
        per_page = max(1, per_page)
        page = max(1, page)
        start = (page - 1) * per_page
        return Page(items=rows[start:start + per_page], total=len(rows), page=page, per_page=per_page)

    def group_counts(self, field_name: str) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for row in self.items:
            key = enum_value(field_name, row.get(field_name))
            key = UNSPECIFIED if key in (None, "") else str(key)
            counts[key] = counts.get(key, 0) + 1
        return counts

    def distinct(self, field_name: str) -> List[str]:
        return sorted({str(row[field_name]) for row in self.items if row.get(field_name) not in (None, "")})
