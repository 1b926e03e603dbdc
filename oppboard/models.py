"""Data models used across oppboard components."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field, fields
from typing import Any

from .db import decode_list

OPPORTUNITY_STATUSES: tuple[str, ...] = ("active", "inactive", "archived")
LIST_STATUSES: tuple[str, ...] = ("all", *OPPORTUNITY_STATUSES)
SUBMISSION_STATUSES: tuple[str, ...] = ("pending", "approved", "rejected")
ADMIN_ROLES: tuple[str, ...] = ("editor", "manager", "admin")

# Suggested values for the admin forms; tags outside this list are accepted.
CATEGORY_TAGS: tuple[str, ...] = (
    "Grant",
    "Bootcamp",
    "Fellowship",
    "Funding",
    "Credits",
    "Program",
    "Scholarship",
    "Accelerator",
    "Hackathon",
    "Competition",
)
SUBMISSION_TYPES: tuple[str, ...] = (
    "bootcamp",
    "grant",
    "fellowship",
    "funding",
    "credits",
    "program",
    "scholarship",
    "other",
)

# Python attribute name -> wire (JSON) key, for keys that differ.
OPPORTUNITY_WIRE_KEYS: dict[str, str] = {
    "logo_url": "logoUrl",
    "category_tags": "categoryTags",
    "applicable_groups": "applicableGroups",
    "apply_url": "applyUrl",
    "funding_types": "fundingTypes",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "verified_at": "verifiedAt",
    "created_by": "createdBy",
    "archived_at": "archivedAt",
    "archived_by": "archivedBy",
    "sort_order": "sortOrder",
}
SUBMISSION_WIRE_KEYS: dict[str, str] = {
    "opportunity_name": "opportunityName",
    "opportunity_type": "opportunityType",
    "user_name": "userName",
    "user_twitter": "userTwitter",
    "created_at": "createdAt",
    "reviewed_at": "reviewedAt",
}
ADMIN_WIRE_KEYS: dict[str, str] = {
    "is_active": "isActive",
    "created_at": "createdAt",
    "last_login": "lastLogin",
}

_LIST_COLUMNS = ("category_tags", "applicable_groups", "regions", "funding_types")


def _to_wire(obj: object, keys: dict[str, str]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for item in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, item.name)
        if isinstance(value, list):
            value = list(value)
        payload[keys.get(item.name, item.name)] = value
    return payload


@dataclass(slots=True)
class OpportunityDraft:
    """Caller-supplied fields for a new opportunity."""

    title: str
    description: str
    description_full: str
    provider: str
    apply_url: str
    category_tags: list[str] = field(default_factory=list)
    status: str = "active"
    logo_url: str | None = None
    deadline: int | None = None
    applicable_groups: list[str] = field(default_factory=list)
    regions: list[str] | None = None
    funding_types: list[str] | None = None
    eligibility: str | None = None
    verified_at: int | None = None
    sort_order: float | None = None


@dataclass(slots=True)
class Opportunity:
    id: str
    title: str
    description: str
    description_full: str
    provider: str
    logo_url: str
    apply_url: str
    status: str
    created_by: str
    created_at: int
    updated_at: int
    category_tags: list[str] = field(default_factory=list)
    applicable_groups: list[str] = field(default_factory=list)
    deadline: int | None = None
    regions: list[str] | None = None
    funding_types: list[str] | None = None
    eligibility: str | None = None
    verified_at: int | None = None
    archived_at: int | None = None
    archived_by: str | None = None
    sort_order: float | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Opportunity:
        values = {key: row[key] for key in row.keys()}
        for column in _LIST_COLUMNS:
            values[column] = decode_list(values[column])
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return _to_wire(self, OPPORTUNITY_WIRE_KEYS)


@dataclass(slots=True)
class Submission:
    id: str
    opportunity_name: str
    opportunity_type: str
    description: str
    link: str
    status: str
    created_at: int
    user_name: str | None = None
    user_twitter: str | None = None
    reviewed_at: int | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Submission:
        return cls(**{key: row[key] for key in row.keys()})

    def to_dict(self) -> dict[str, Any]:
        return _to_wire(self, SUBMISSION_WIRE_KEYS)


@dataclass(slots=True)
class AdminIdentity:
    id: str
    email: str
    name: str
    role: str
    is_active: bool
    created_at: int
    last_login: int | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> AdminIdentity:
        values = {key: row[key] for key in row.keys()}
        values["is_active"] = bool(values["is_active"])
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return _to_wire(self, ADMIN_WIRE_KEYS)


@dataclass(slots=True)
class AuditEntry:
    admin_id: str
    admin_email: str
    action: str
    resource_type: str
    resource_id: str
    changes: Any = None
    timestamp: int = 0
    id: int | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> AuditEntry:
        values = {key: row[key] for key in row.keys()}
        if values["changes"] is not None:
            values["changes"] = json.loads(values["changes"])
        return cls(**values)
