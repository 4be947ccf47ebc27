"""In-process audit store used when Supabase is not configured (local dev, tests)."""

from datetime import datetime
from typing import Any, Dict, List, Tuple
from uuid import uuid4

from app.db.store import StoreQuery, StoreResult


def _as_datetime(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


class InMemoryAuditStore:
    """Append-only list of audit rows with the same query semantics as PostgREST."""

    def __init__(self):
        self._tables: Dict[str, List[Dict[str, Any]]] = {}

    def rows(self, table: str) -> List[Dict[str, Any]]:
        """Copies of every row in insertion order."""
        return [dict(row) for row in self._tables.get(table, [])]

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(record)
        row.setdefault("id", str(uuid4()))
        self._tables.setdefault(table, []).append(row)
        return dict(row)

    def _matches(self, row: Dict[str, Any], query: StoreQuery) -> bool:
        for column, value in query.equals.items():
            if row.get(column) != value:
                return False
        for column, value in query.gte.items():
            if row.get(column) is None or _as_datetime(row[column]) < _as_datetime(value):
                return False
        for column, value in query.lte.items():
            if row.get(column) is None or _as_datetime(row[column]) > _as_datetime(value):
                return False
        return True

    async def select(self, table: str, query: StoreQuery) -> StoreResult:
        matched = [row for row in self._tables.get(table, []) if self._matches(row, query)]

        if query.order_by:
            def sort_key(row: Dict[str, Any]):
                primary = _as_datetime(row.get(query.order_by))
                if query.tiebreaker:
                    return primary, str(row.get(query.tiebreaker) or "")
                return primary

            # sorted() is stable, so ties without a tiebreaker keep insertion order
            matched = sorted(matched, key=sort_key, reverse=query.descending)

        total = len(matched)
        start = query.offset or 0
        if query.limit is not None:
            matched = matched[start:start + query.limit]
        else:
            matched = matched[start:]

        if query.columns != "*":
            columns = [c.strip() for c in query.columns.split(",")]
            matched = [{c: row.get(c) for c in columns} for row in matched]
        else:
            matched = [dict(row) for row in matched]

        return StoreResult(rows=matched, count=total if query.count else None)

    async def ping(self, table: str) -> Tuple[bool, str]:
        return True, "In-memory audit store"
