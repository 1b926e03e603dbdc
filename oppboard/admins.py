"""Registry of admin identities allowed to curate opportunities."""

from __future__ import annotations

import logging

from .db import Database
from .errors import AuthorizationError, NotFoundError, ValidationError
from .metrics import record_mutation
from .models import ADMIN_ROLES, AdminIdentity

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


class AdminRegistry:
    """Persisted list of admin accounts.

    Roles are stored but never consulted; an account either is an active
    admin or it is not. Deactivation flips ``is_active`` and keeps the row.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    def is_admin(self, email: str) -> bool:
        row = self.database.execute(
            "SELECT is_active FROM admins WHERE email = ?",
            (_normalize_email(email),),
        ).fetchone()
        return bool(row and row["is_active"])

    def authorize(self, actor: str) -> None:
        """Raise :class:`AuthorizationError` unless ``actor`` is an active admin."""

        if not self.is_admin(actor):
            logger.warning("Rejected operation by non-admin %s", actor)
            raise AuthorizationError(f"{actor or 'anonymous'} is not an active admin")

    def add(self, email: str, name: str, role: str = "admin") -> str:
        email = _normalize_email(email)
        if not email or "@" not in email:
            raise ValidationError("A valid email address is required")
        if role not in ADMIN_ROLES:
            raise ValidationError(f"Unknown admin role {role!r}")

        new_id = self.database.new_id()
        with self.database.cursor() as cur:
            cur.execute(
                """
                INSERT INTO admins (id, email, name, role, created_at, is_active)
                VALUES (?, ?, ?, ?, ?, 1)
                ON CONFLICT(email) DO UPDATE SET is_active = 1
                """,
                (new_id, email, name, role, self.database.timestamp()),
            )
            cur.execute("SELECT id FROM admins WHERE email = ?", (email,))
            admin_id = str(cur.fetchone()["id"])
        if admin_id == new_id:
            logger.info("Added admin %s", email)
            record_mutation("admin", "add")
        else:
            logger.info("Reactivated admin %s", email)
            record_mutation("admin", "reactivate")
        return admin_id

    def list(self) -> list[AdminIdentity]:
        rows = self.database.execute("SELECT * FROM admins ORDER BY created_at, rowid").fetchall()
        return [AdminIdentity.from_row(row) for row in rows]

    def get_by_email(self, email: str) -> AdminIdentity | None:
        row = self.database.execute(
            "SELECT * FROM admins WHERE email = ?", (_normalize_email(email),)
        ).fetchone()
        return AdminIdentity.from_row(row) if row else None

    def deactivate(self, admin_id: str) -> str:
        with self.database.cursor() as cur:
            cur.execute("UPDATE admins SET is_active = 0 WHERE id = ?", (admin_id,))
            if cur.rowcount == 0:
                raise NotFoundError("Admin", admin_id)
        logger.info("Deactivated admin %s", admin_id)
        record_mutation("admin", "deactivate")
        return admin_id

    def record_login(self, email: str) -> None:
        """Stamp ``last_login`` for a registered admin; unknown emails are ignored."""

        self.database.execute(
            "UPDATE admins SET last_login = ? WHERE email = ?",
            (self.database.timestamp(), _normalize_email(email)),
        )
