"""Wiring of the store, services and collaborators for one process."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .admins import AdminRegistry
from .audit import AuditLog
from .auth import AdminAuthenticator
from .config import Config
from .db import Database
from .favicon import FaviconResolver
from .opportunities import OpportunityService
from .submissions import SubmissionService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppContext:
    config: Config
    database: Database
    registry: AdminRegistry
    audit: AuditLog
    opportunities: OpportunityService
    submissions: SubmissionService
    authenticator: AdminAuthenticator
    favicons: FaviconResolver

    def close(self) -> None:
        self.database.close()


def build_context(config: Config, database: Database | None = None) -> AppContext:
    database = database or Database(config.sqlite_path)
    database.initialize_schema()
    registry = AdminRegistry(database)
    audit = AuditLog(database)
    authorizer = registry if config.enforce_admin_registry else None
    if authorizer is not None:
        logger.info("Mutations restricted to active admins in the registry")
    return AppContext(
        config=config,
        database=database,
        registry=registry,
        audit=audit,
        opportunities=OpportunityService(
            database,
            authorizer=authorizer,
            audit=audit,
            favicon_service_url=config.favicon_service_url,
        ),
        submissions=SubmissionService(database, authorizer=authorizer, audit=audit),
        authenticator=AdminAuthenticator(config, registry=registry),
        favicons=FaviconResolver(config),
    )
