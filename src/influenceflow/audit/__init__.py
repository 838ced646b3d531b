"""Audit trail: models, storage, logger, and CLI for event tracking."""

from influenceflow.audit.cli import build_parser
from influenceflow.audit.logger import AuditLogger
from influenceflow.audit.models import AuditEntry, EventType
from influenceflow.audit.store import (
    close_audit_db,
    init_audit_db,
    init_audit_table,
    insert_audit_entry,
    query_audit_trail,
)

__all__ = [
    "AuditEntry",
    "AuditLogger",
    "EventType",
    "build_parser",
    "close_audit_db",
    "init_audit_db",
    "init_audit_table",
    "insert_audit_entry",
    "query_audit_trail",
]
