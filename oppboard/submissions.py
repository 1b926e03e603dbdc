"""Visitor-submitted opportunity suggestions awaiting admin review."""

from __future__ import annotations

import logging

from .audit import AuditLog
from .db import Database
from .errors import NotFoundError, ValidationError
from .metrics import SUBMISSIONS_RECEIVED, record_mutation
from .models import SUBMISSION_STATUSES, Submission
from .opportunities import Authorizer

logger = logging.getLogger(__name__)

REQUIRED_FIELDS: tuple[str, ...] = ("opportunity_name", "opportunity_type", "description", "link")


def _clean(value: object) -> str | None:
    text = str(value or "").strip()
    return text or None


class SubmissionService:
    """Create, list and review submissions.

    Submissions are never promoted to opportunities automatically; an admin
    copies an approved suggestion into the opportunity form by hand.
    """

    def __init__(
        self,
        database: Database,
        *,
        authorizer: Authorizer | None = None,
        audit: AuditLog | None = None,
    ) -> None:
        self.database = database
        self.authorizer = authorizer
        self.audit = audit

    def create(
        self,
        opportunity_name: str,
        opportunity_type: str,
        description: str,
        link: str,
        user_name: str | None = None,
        user_twitter: str | None = None,
    ) -> str:
        values = {
            "opportunity_name": _clean(opportunity_name),
            "opportunity_type": _clean(opportunity_type),
            "description": _clean(description),
            "link": _clean(link),
        }
        missing = [name for name in REQUIRED_FIELDS if values[name] is None]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        submission = Submission(
            id=self.database.new_id(),
            status="pending",
            created_at=self.database.timestamp(),
            user_name=_clean(user_name),
            user_twitter=_clean(user_twitter),
            reviewed_at=None,
            **values,
        )
        with self.database.cursor() as cur:
            cur.execute(
                """
                INSERT INTO submissions (
                    id, opportunity_name, opportunity_type, description, link,
                    user_name, user_twitter, status, created_at, reviewed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    submission.id,
                    submission.opportunity_name,
                    submission.opportunity_type,
                    submission.description,
                    submission.link,
                    submission.user_name,
                    submission.user_twitter,
                    submission.status,
                    submission.created_at,
                    submission.reviewed_at,
                ),
            )
        SUBMISSIONS_RECEIVED.inc()
        logger.info("Received submission %s (%s)", submission.id, submission.opportunity_name)
        return submission.id

    def get(self, submission_id: str) -> Submission:
        row = self.database.execute(
            "SELECT * FROM submissions WHERE id = ?", (submission_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError("Submission", submission_id)
        return Submission.from_row(row)

    def list(self, status: str | None = None) -> list[Submission]:
        """Submissions with an exact status match (all when omitted), newest first."""

        sql = "SELECT * FROM submissions"
        parameters: list[object] = []
        if status:
            sql += " WHERE status = ?"
            parameters.append(status)
        sql += " ORDER BY created_at DESC, rowid DESC"
        rows = self.database.execute(sql, parameters).fetchall()
        return [Submission.from_row(row) for row in rows]

    def update_status(self, submission_id: str, status: str, actor: str | None = None) -> str:
        if status not in SUBMISSION_STATUSES:
            raise ValidationError(f"Unknown submission status {status!r}")
        if self.authorizer is not None:
            self.authorizer.authorize(actor or "")

        with self.database.cursor() as cur:
            cur.execute(
                "UPDATE submissions SET status = ?, reviewed_at = ? WHERE id = ?",
                (status, self.database.timestamp(), submission_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("Submission", submission_id)
        logger.info("Submission %s marked %s by %s", submission_id, status, actor or "unknown")
        record_mutation("submission", "review")
        if self.audit is not None and actor:
            self.audit.record(
                actor=actor,
                action="review",
                resource_type="submission",
                resource_id=submission_id,
                changes={"status": status},
            )
        return submission_id
