"""Store-neutral query description and the interface audit services depend on."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple


@dataclass
class StoreQuery:
    """A single filtered, ordered, paginated read against one table.

    ``equals`` holds column equality filters; ``gte``/``lte`` hold inclusive
    range bounds. All filters are ANDed.
    """

    columns: str = "*"
    equals: Dict[str, Any] = field(default_factory=dict)
    gte: Dict[str, Any] = field(default_factory=dict)
    lte: Dict[str, Any] = field(default_factory=dict)
    order_by: Optional[str] = "timestamp"
    # Secondary sort key, in the same direction; makes paging stable across ties.
    tiebreaker: Optional[str] = None
    descending: bool = True
    offset: Optional[int] = None
    limit: Optional[int] = None
    count: bool = False


@dataclass
class StoreResult:
    """Rows returned by a query, plus the exact match count when requested."""

    rows: List[Dict[str, Any]]
    count: Optional[int] = None


class AuditStore(Protocol):
    """Append-only access to the audit table.

    Audit rows are immutable, so there is no update or delete.
    Implementations raise ``StoreError`` for backend failures.
    """

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def select(self, table: str, query: StoreQuery) -> StoreResult:
        ...

    async def ping(self, table: str) -> Tuple[bool, str]:
        ...
