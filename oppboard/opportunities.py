"""Query and mutation operations for opportunity records."""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from dataclasses import asdict, fields
from typing import Any, Protocol

from .audit import AuditLog
from .db import Database, encode_list
from .errors import NotFoundError, ValidationError
from .favicon import sync_url
from .metrics import record_mutation
from .models import LIST_STATUSES, OPPORTUNITY_STATUSES, Opportunity, OpportunityDraft

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {item.name for item in fields(OpportunityDraft)} | {"archived_at", "archived_by"}
)
_NOT_NULL_FIELDS = frozenset(
    {
        "title",
        "description",
        "description_full",
        "provider",
        "apply_url",
        "status",
        "category_tags",
        "applicable_groups",
    }
)
_LIST_FIELDS = frozenset({"category_tags", "applicable_groups", "regions", "funding_types"})
_TIMESTAMP_FIELDS = frozenset({"deadline", "verified_at", "archived_at"})
_COLUMNS: tuple[str, ...] = tuple(item.name for item in fields(Opportunity))


class Authorizer(Protocol):
    def authorize(self, actor: str) -> None: ...


def split_list(value: str | Iterable[str] | None) -> list[str]:
    """Accept a comma-separated string or an iterable and return trimmed, non-empty items."""

    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else value
    return [str(item).strip() for item in items if str(item).strip()]


def normalize_tags(tags: str | Iterable[str] | None) -> list[str]:
    """Trim and deduplicate category tags.

    Tags compare case-insensitively after trimming; the first spelling seen
    is kept and the original order is preserved, so
    ``["Grant", " grant ", "Bootcamp"]`` becomes ``["Grant", "Bootcamp"]``.
    """

    seen: set[str] = set()
    normalized: list[str] = []
    for tag in split_list(tags):
        key = tag.casefold()
        if key in seen:
            continue
        seen.add(key)
        normalized.append(tag)
    return normalized


def check_field_types(values: Mapping[str, Any]) -> None:
    """Reject values whose type does not match the stored column."""

    for name, value in values.items():
        if value is None:
            continue
        if name in _TIMESTAMP_FIELDS:
            valid = isinstance(value, int) and not isinstance(value, bool)
        elif name == "sort_order":
            valid = isinstance(value, (int, float)) and not isinstance(value, bool)
        elif name in _LIST_FIELDS:
            valid = isinstance(value, str) or (
                isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value)
            )
        else:
            valid = isinstance(value, str)
        if not valid:
            raise ValidationError(f"{name} has an invalid type: {type(value).__name__}")


def validate_opportunity_fields(
    values: Mapping[str, Any], *, deadline_not_sure: bool = False
) -> None:
    """Presence checks applied by the admin forms before anything is stored."""

    missing = [
        name
        for name in ("title", "provider", "apply_url")
        if not str(values.get(name) or "").strip()
    ]
    if values.get("deadline") is None and not deadline_not_sure:
        missing.append("deadline")
    if not normalize_tags(values.get("category_tags")):
        missing.append("category_tags")
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


class OpportunityService:
    """The only sanctioned access path to opportunity records."""

    def __init__(
        self,
        database: Database,
        *,
        authorizer: Authorizer | None = None,
        audit: AuditLog | None = None,
        favicon_service_url: str | None = None,
    ) -> None:
        self.database = database
        self.authorizer = authorizer
        self.audit = audit
        self._favicon_service_url = favicon_service_url

    def _authorize(self, actor: str) -> None:
        if self.authorizer is not None:
            self.authorizer.authorize(actor)

    def _record(
        self,
        actor: str,
        action: str,
        opportunity_id: str,
        changes: Mapping[str, Any] | None = None,
    ) -> None:
        record_mutation("opportunity", action)
        if self.audit is not None:
            self.audit.record(
                actor=actor,
                action=action,
                resource_type="opportunity",
                resource_id=opportunity_id,
                changes=changes,
            )

    def _next_timestamp(self, previous: int | None = None) -> int:
        now = self.database.timestamp()
        if previous is not None and now <= previous:
            return previous + 1
        return now

    def _derive_logo(self, apply_url: str) -> str:
        if self._favicon_service_url:
            return sync_url(apply_url, self._favicon_service_url)
        return sync_url(apply_url)

    def _insert(self, opportunity: Opportunity) -> None:
        values = asdict(opportunity)
        for name in _LIST_FIELDS:
            values[name] = encode_list(values[name])
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self.database.cursor() as cur:
            cur.execute(
                f"INSERT INTO opportunities ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                tuple(values[column] for column in _COLUMNS),
            )

    def get(self, opportunity_id: str) -> Opportunity:
        row = self.database.execute(
            "SELECT * FROM opportunities WHERE id = ?", (opportunity_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError("Opportunity", opportunity_id)
        return Opportunity.from_row(row)

    def list(
        self,
        status: str = "all",
        search: str | None = None,
        include_archived: bool = True,
        category: str | None = None,
    ) -> list[Opportunity]:
        """Return opportunities matching ``status``, ``search`` and ``category``.

        ``include_archived`` does not hide archived rows; callers that must not
        show them (the public listing) ask for ``status="active"`` instead.
        """

        if status not in LIST_STATUSES:
            raise ValidationError(f"Unknown status filter {status!r}")

        sql = "SELECT * FROM opportunities"
        parameters: list[object] = []
        if status != "all":
            sql += " WHERE status = ?"
            parameters.append(status)
        sql += " ORDER BY sort_order IS NULL, sort_order, created_at, rowid"
        rows = self.database.execute(sql, parameters).fetchall()
        opportunities = [Opportunity.from_row(row) for row in rows]

        needle = (search or "").strip().casefold()
        if needle:
            opportunities = [
                item
                for item in opportunities
                if needle in item.title.casefold()
                or needle in item.description.casefold()
                or needle in item.provider.casefold()
            ]
        if category:
            opportunities = [item for item in opportunities if category in item.category_tags]
        logger.debug(
            "Listed %d opportunities (status=%s search=%r include_archived=%s)",
            len(opportunities),
            status,
            search,
            include_archived,
        )
        return opportunities

    def categories(self) -> list[str]:
        """Sorted unique tags across active opportunities."""

        tags = {tag for item in self.list(status="active") for tag in item.category_tags}
        return sorted(tags)

    def create(self, draft: OpportunityDraft, actor: str) -> str:
        self._authorize(actor)
        check_field_types(asdict(draft))
        if draft.status not in OPPORTUNITY_STATUSES:
            raise ValidationError(f"Unknown status {draft.status!r}")

        now = self._next_timestamp()
        opportunity = Opportunity(
            id=self.database.new_id(),
            title=draft.title,
            description=draft.description,
            description_full=draft.description_full,
            provider=draft.provider,
            logo_url=draft.logo_url or self._derive_logo(draft.apply_url),
            apply_url=draft.apply_url,
            status=draft.status,
            created_by=actor,
            created_at=now,
            updated_at=now,
            category_tags=normalize_tags(draft.category_tags),
            applicable_groups=split_list(draft.applicable_groups),
            deadline=draft.deadline,
            regions=split_list(draft.regions) if draft.regions is not None else None,
            funding_types=(
                split_list(draft.funding_types) if draft.funding_types is not None else None
            ),
            eligibility=draft.eligibility,
            verified_at=draft.verified_at,
            sort_order=draft.sort_order,
        )
        self._insert(opportunity)
        logger.info("Created opportunity %s (%s) by %s", opportunity.id, opportunity.title, actor)
        self._record(actor, "create", opportunity.id, {"title": opportunity.title})
        return opportunity.id

    def update(self, opportunity_id: str, changes: Mapping[str, Any], actor: str) -> str:
        self._authorize(actor)
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        for name in _NOT_NULL_FIELDS & set(changes):
            if changes[name] is None:
                raise ValidationError(f"{name} cannot be cleared")
        check_field_types(changes)
        if "status" in changes and changes["status"] not in OPPORTUNITY_STATUSES:
            raise ValidationError(f"Unknown status {changes['status']!r}")

        existing = self.get(opportunity_id)
        values: dict[str, Any] = dict(changes)
        if "category_tags" in values:
            values["category_tags"] = normalize_tags(values["category_tags"])
            if not values["category_tags"]:
                raise ValidationError("category_tags cannot be cleared")
        for name in _LIST_FIELDS - {"category_tags"}:
            if name in values and values[name] is not None:
                values[name] = split_list(values[name])
        if "logo_url" in values and not values["logo_url"]:
            values["logo_url"] = self._derive_logo(values.get("apply_url") or existing.apply_url)
        values["updated_at"] = self._next_timestamp(existing.updated_at)

        columns = sorted(values)
        parameters = [
            encode_list(values[name]) if name in _LIST_FIELDS else values[name]
            for name in columns
        ]
        assignments = ", ".join(f"{name} = ?" for name in columns)
        with self.database.cursor() as cur:
            cur.execute(
                f"UPDATE opportunities SET {assignments} WHERE id = ?",
                (*parameters, opportunity_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("Opportunity", opportunity_id)
        logger.info("Updated opportunity %s fields %s by %s", opportunity_id, sorted(changes), actor)
        self._record(actor, "update", opportunity_id, {name: values[name] for name in changes})
        return opportunity_id

    def duplicate(self, opportunity_id: str, actor: str) -> str:
        """Copy a record into a new active record with fresh timestamps."""

        self._authorize(actor)
        source = self.get(opportunity_id)
        now = self._next_timestamp(source.updated_at)
        clone = copy.deepcopy(source)
        clone.id = self.database.new_id()
        clone.created_at = now
        clone.updated_at = now
        clone.status = "active"
        self._insert(clone)
        logger.info("Duplicated opportunity %s into %s by %s", opportunity_id, clone.id, actor)
        self._record(actor, "duplicate", clone.id, {"source": opportunity_id})
        return clone.id

    def archive(self, opportunity_id: str, actor: str) -> str:
        """Mark a record archived; archiving again refreshes ``archived_at``/``archived_by``."""

        self._authorize(actor)
        existing = self.get(opportunity_id)
        now = self._next_timestamp(existing.updated_at)
        with self.database.cursor() as cur:
            cur.execute(
                """
                UPDATE opportunities
                SET status = 'archived', archived_at = ?, archived_by = ?, updated_at = ?
                WHERE id = ?
                """,
                (now, actor, now, opportunity_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("Opportunity", opportunity_id)
        logger.info("Archived opportunity %s by %s", opportunity_id, actor)
        self._record(actor, "archive", opportunity_id, {"previous_status": existing.status})
        return opportunity_id

    def delete(self, opportunity_id: str, actor: str) -> None:
        self._authorize(actor)
        with self.database.cursor() as cur:
            cur.execute("DELETE FROM opportunities WHERE id = ?", (opportunity_id,))
            if cur.rowcount == 0:
                raise NotFoundError("Opportunity", opportunity_id)
        logger.info("Deleted opportunity %s by %s", opportunity_id, actor)
        self._record(actor, "delete", opportunity_id)
