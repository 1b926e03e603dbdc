"""Append-only log of admin actions."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from .db import Database
from .models import AuditEntry

logger = logging.getLogger(__name__)


class AuditLog:
    """Records who changed what, one row per mutating operation."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def record(
        self,
        *,
        actor: str,
        action: str,
        resource_type: str,
        resource_id: str,
        changes: Mapping[str, Any] | None = None,
        admin_id: str | None = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            admin_id=admin_id or actor,
            admin_email=actor,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            changes=dict(changes) if changes is not None else None,
            timestamp=self.database.timestamp(),
        )
        with self.database.cursor() as cur:
            cur.execute(
                """
                INSERT INTO audit_log (
                    admin_id, admin_email, action, resource_type, resource_id, changes, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.admin_id,
                    entry.admin_email,
                    entry.action,
                    entry.resource_type,
                    entry.resource_id,
                    json.dumps(entry.changes, default=str) if entry.changes is not None else None,
                    entry.timestamp,
                ),
            )
            entry.id = int(cur.lastrowid)
        logger.debug("Audit %s %s/%s by %s", action, resource_type, resource_id, actor)
        return entry

    def list(
        self, *, admin_id: str | None = None, resource_id: str | None = None
    ) -> list[AuditEntry]:
        """Return entries newest first, optionally narrowed to an admin or resource."""

        sql = "SELECT * FROM audit_log WHERE 1=1"
        parameters: list[object] = []
        if admin_id is not None:
            sql += " AND admin_id = ?"
            parameters.append(admin_id)
        if resource_id is not None:
            sql += " AND resource_id = ?"
            parameters.append(resource_id)
        sql += " ORDER BY timestamp DESC, id DESC"
        rows = self.database.execute(sql, parameters).fetchall()
        return [AuditEntry.from_row(row) for row in rows]
