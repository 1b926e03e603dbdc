"""HTTP surface for the public listing, visitor submissions and admin curation."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import Config, ConfigError
from .context import AppContext, build_context
from .db import Database
from .errors import (
    AuthorizationError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from .metrics import metrics_app
from .models import OPPORTUNITY_WIRE_KEYS, OpportunityDraft
from .opportunities import validate_opportunity_fields

logger = logging.getLogger(__name__)

SUBMISSION_REQUIRED = ("opportunityName", "opportunityType", "description", "link")
_FIELD_FROM_WIRE = {wire: name for name, wire in OPPORTUNITY_WIRE_KEYS.items()}


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class OpportunityPayload(BaseModel):
    title: str = ""
    description: str = ""
    description_full: str = ""
    provider: str = ""
    applyUrl: str = ""
    logoUrl: str | None = None
    categoryTags: list[str] | str = Field(default_factory=list)
    applicableGroups: list[str] | str = Field(default_factory=list)
    regions: list[str] | str | None = None
    fundingTypes: list[str] | str | None = None
    eligibility: str | None = None
    deadline: int | None = None
    deadlineNotSure: bool = False
    status: str = "active"
    verifiedAt: int | None = None
    sortOrder: float | None = None

    def to_fields(self) -> dict[str, Any]:
        data = self.model_dump(exclude={"deadlineNotSure"})
        return {_FIELD_FROM_WIRE.get(key, key): value for key, value in data.items()}


class OpportunityPatch(BaseModel):
    """Partial update body; only the keys the client sends are applied."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    description: str | None = None
    description_full: str | None = None
    provider: str | None = None
    applyUrl: str | None = None
    logoUrl: str | None = None
    categoryTags: list[str] | str | None = None
    applicableGroups: list[str] | str | None = None
    regions: list[str] | str | None = None
    fundingTypes: list[str] | str | None = None
    eligibility: str | None = None
    deadline: int | None = None
    status: str | None = None
    verifiedAt: int | None = None
    sortOrder: float | None = None
    archivedAt: int | None = None
    archivedBy: str | None = None

    def to_changes(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        return {_FIELD_FROM_WIRE.get(key, key): value for key, value in data.items()}


class ReviewRequest(BaseModel):
    status: str


def _context(request: Request) -> AppContext:
    return request.app.state.context


def _current_admin(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthorizationError("Missing bearer token")
    return _context(request).authenticator.verify(token.strip())


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    def _validation(_: Request, exc: ValidationError):
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    def _request_validation(_: Request, exc: RequestValidationError):
        return _error(400, "Invalid request", details=jsonable_encoder(exc.errors()))

    @app.exception_handler(AuthorizationError)
    def _unauthorized(_: Request, exc: AuthorizationError):
        return _error(401, str(exc))

    @app.exception_handler(NotFoundError)
    def _not_found(_: Request, exc: NotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(UpstreamError)
    def _upstream(_: Request, exc: UpstreamError):
        logger.warning("Upstream failure: %s", exc)
        return _error(502, str(exc))

    @app.exception_handler(ConfigError)
    def _config(_: Request, exc: ConfigError):
        logger.error("Configuration error: %s", exc)
        return _error(503, str(exc))


def create_app(config: Config | None = None, database: Database | None = None) -> FastAPI:
    config = config or Config.from_env()
    context = build_context(config, database)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        context.close()

    app = FastAPI(title="oppboard", lifespan=lifespan)
    app.state.context = context
    _register_error_handlers(app)
    app.mount("/metrics", metrics_app())

    @app.post("/api/submit-opportunity", tags=["public"])
    def submit_opportunity(body: dict[str, Any] = Body(...)):
        if not all(body.get(key) for key in SUBMISSION_REQUIRED):
            return _error(400, "Missing required fields")

        submission_id = context.submissions.create(
            opportunity_name=body["opportunityName"],
            opportunity_type=body["opportunityType"],
            description=body["description"],
            link=body["link"],
            user_name=body.get("userName") or None,
            user_twitter=body.get("userTwitter") or None,
        )
        return {
            "success": True,
            "message": "Opportunity submitted successfully. Admin will review shortly.",
            "id": submission_id,
        }

    @app.get("/api/opportunities", tags=["public"])
    def public_opportunities(search: str | None = None, category: str | None = None):
        items = context.opportunities.list(status="active", search=search, category=category)
        return [item.to_dict() for item in items]

    @app.get("/api/categories", tags=["public"])
    def public_categories():
        return context.opportunities.categories()

    @app.post("/api/admin/login", tags=["admin"])
    def admin_login(payload: LoginRequest):
        session = context.authenticator.login(payload.username, payload.password)
        return {
            "token": session.token,
            "username": session.username,
            "expiresAt": session.expires_at,
        }

    @app.get("/api/admin/opportunities", tags=["admin"])
    def admin_list_opportunities(
        request: Request,
        status: str = "all",
        search: str | None = None,
        includeArchived: bool = True,
    ):
        _current_admin(request)
        items = context.opportunities.list(
            status=status, search=search, include_archived=includeArchived
        )
        return [item.to_dict() for item in items]

    @app.post("/api/admin/opportunities", tags=["admin"])
    def admin_create_opportunity(request: Request, payload: OpportunityPayload):
        actor = _current_admin(request)
        fields = payload.to_fields()
        validate_opportunity_fields(fields, deadline_not_sure=payload.deadlineNotSure)
        opportunity_id = context.opportunities.create(OpportunityDraft(**fields), actor)
        return {"id": opportunity_id}

    @app.get("/api/admin/opportunities/{opportunity_id}", tags=["admin"])
    def admin_get_opportunity(request: Request, opportunity_id: str):
        _current_admin(request)
        return context.opportunities.get(opportunity_id).to_dict()

    @app.patch("/api/admin/opportunities/{opportunity_id}", tags=["admin"])
    def admin_update_opportunity(
        request: Request, opportunity_id: str, payload: OpportunityPatch
    ):
        actor = _current_admin(request)
        context.opportunities.update(opportunity_id, payload.to_changes(), actor)
        return {"id": opportunity_id}

    @app.delete("/api/admin/opportunities/{opportunity_id}", tags=["admin"])
    def admin_delete_opportunity(request: Request, opportunity_id: str):
        actor = _current_admin(request)
        context.opportunities.delete(opportunity_id, actor)
        return {"success": True}

    @app.post("/api/admin/opportunities/{opportunity_id}/duplicate", tags=["admin"])
    def admin_duplicate_opportunity(request: Request, opportunity_id: str):
        actor = _current_admin(request)
        return {"id": context.opportunities.duplicate(opportunity_id, actor)}

    @app.post("/api/admin/opportunities/{opportunity_id}/archive", tags=["admin"])
    def admin_archive_opportunity(request: Request, opportunity_id: str):
        actor = _current_admin(request)
        return {"id": context.opportunities.archive(opportunity_id, actor)}

    @app.get("/api/admin/submissions", tags=["admin"])
    def admin_list_submissions(request: Request, status: str | None = None):
        _current_admin(request)
        return [item.to_dict() for item in context.submissions.list(status)]

    @app.patch("/api/admin/submissions/{submission_id}", tags=["admin"])
    def admin_review_submission(request: Request, submission_id: str, payload: ReviewRequest):
        actor = _current_admin(request)
        context.submissions.update_status(submission_id, payload.status, actor)
        return {"id": submission_id}

    @app.get("/api/admin/audit", tags=["admin"])
    def admin_audit_log(request: Request, resourceId: str | None = None):
        _current_admin(request)
        entries = context.audit.list(resource_id=resourceId)
        return [
            {
                "id": entry.id,
                "adminId": entry.admin_id,
                "adminEmail": entry.admin_email,
                "action": entry.action,
                "resourceType": entry.resource_type,
                "resourceId": entry.resource_id,
                "changes": entry.changes,
                "timestamp": entry.timestamp,
            }
            for entry in entries
        ]

    @app.get("/api/admin/favicon", tags=["admin"])
    async def admin_favicon(request: Request, url: str):
        _current_admin(request)
        return {
            "syncUrl": context.favicons.sync_url(url),
            "resolvedUrl": await context.favicons.resolve_with_fallback(url),
        }

    return app
