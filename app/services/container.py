"""Wiring of the audit components around one injected store handle."""

from dataclasses import dataclass

from app.config.settings import Settings
from app.db.store import AuditStore
from app.services.audit_logger import AuditLogWriter
from app.services.audit_query import AuditQueryEngine
from app.services.audit_summary import AuditAggregator
from app.services.audit_views import AuditTrailViews


@dataclass
class AuditServices:
    store: AuditStore
    writer: AuditLogWriter
    engine: AuditQueryEngine
    aggregator: AuditAggregator
    views: AuditTrailViews


def build_audit_services(store: AuditStore, config: Settings) -> AuditServices:
    """Construct every audit component against the same store."""
    table = config.AUDIT_LOG_TABLE
    engine = AuditQueryEngine(store, table=table)
    return AuditServices(
        store=store,
        writer=AuditLogWriter(store, table=table, retries=config.AUDIT_WRITE_RETRIES),
        engine=engine,
        aggregator=AuditAggregator(store, table=table),
        views=AuditTrailViews(engine, trail_limit=config.AUDIT_TRAIL_LIMIT),
    )
