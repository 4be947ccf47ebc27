"""Supabase REST API audit store.

Reads and writes go through Supabase's PostgREST API over HTTPS, using the
async client so inserts suspend instead of blocking the event loop.
"""

import asyncio
from typing import Any, Dict, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from app.config.logger import app_logger
from app.db.store import StoreQuery, StoreResult
from app.utils.exceptions import StoreError


class SupabaseAuditStore:
    """Append-only audit store backed by a Supabase table."""

    def __init__(self, client: AsyncClient, timeout: float = 5.0):
        self.client = client
        self.timeout = timeout

    async def _execute(self, builder, operation: str):
        try:
            return await asyncio.wait_for(builder.execute(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StoreError(f"{operation} timed out after {self.timeout}s") from e
        except APIError as e:
            raise StoreError(f"{operation} failed: {e.message}") from e
        except httpx.HTTPError as e:
            raise StoreError(f"{operation} failed: {e}") from e

    # ============================================
    # Writes
    # ============================================

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored (with generated id)."""
        builder = self.client.table(table).insert(record)
        response = await self._execute(builder, f"insert into {table}")

        if response.data and len(response.data) > 0:
            return response.data[0]
        raise StoreError(f"Failed to insert into {table} - no data returned")

    # ============================================
    # Reads
    # ============================================

    def build(self, table: str, query: StoreQuery):
        """Translate a StoreQuery into a PostgREST request builder."""
        if query.count:
            builder = self.client.table(table).select(query.columns, count="exact")
        else:
            builder = self.client.table(table).select(query.columns)

        for column, value in query.equals.items():
            builder = builder.eq(column, value)
        for column, value in query.gte.items():
            builder = builder.gte(column, value)
        for column, value in query.lte.items():
            builder = builder.lte(column, value)

        if query.order_by:
            builder = builder.order(query.order_by, desc=query.descending)
            if query.tiebreaker:
                builder = builder.order(query.tiebreaker, desc=query.descending)

        if query.limit is not None:
            start = query.offset or 0
            builder = builder.range(start, start + query.limit - 1)

        return builder

    async def select(self, table: str, query: StoreQuery) -> StoreResult:
        """Run a filtered read and return rows plus exact count if requested."""
        response = await self._execute(self.build(table, query), f"query {table}")
        rows = response.data or []
        if query.count:
            return StoreResult(rows=rows, count=response.count or 0)
        return StoreResult(rows=rows)

    # ============================================
    # Health Check
    # ============================================

    async def ping(self, table: str) -> Tuple[bool, str]:
        """Check if the Supabase audit table is reachable."""
        try:
            await self._execute(self.client.table(table).select("id").limit(1), f"ping {table}")
            return True, "Supabase REST API connection healthy"
        except StoreError as e:
            app_logger.warning(f"Supabase ping failed: {e}")
            return False, f"Supabase connection failed: {e}"
