"""Command line interface for oppboard."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .config import Config, ConfigError
from .context import AppContext, build_context
from .errors import AuthorizationError, NotFoundError, UpstreamError, ValidationError
from .images import ImageHostClient
from .models import OpportunityDraft
from .opportunities import validate_opportunity_fields

app = typer.Typer(help="Utilities for operating the oppboard service")
console = Console()

ActorOption = typer.Option(
    "cli", "--actor", envvar="OPPBOARD_ACTOR", help="Admin identity recorded for the change"
)


def _build_context() -> AppContext:
    return build_context(Config.from_env())


def _format_ms(value: int | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value / 1000, UTC).strftime("%Y-%m-%d")


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("init-db")
def init_db() -> None:
    """Create the SQLite schema if it does not exist."""

    context = _build_context()
    try:
        typer.echo(f"Initialized {context.config.sqlite_path}")
    finally:
        context.close()


@app.command()
def serve() -> None:
    """Run the HTTP API with uvicorn."""

    import uvicorn

    from .api import create_app

    config = Config.from_env()
    uvicorn.run(create_app(config), host=config.api_host, port=config.api_port)


@app.command()
def status() -> None:
    """Print a quick status summary."""

    context = _build_context()
    try:
        for table in ("opportunities", "submissions", "admins", "audit_log"):
            typer.echo(f"{table}: {context.database.count(table)}")
        pending = len(context.submissions.list("pending"))
        typer.echo(f"pending submissions: {pending}")
    finally:
        context.close()


@app.command("list")
def list_opportunities(
    status: str = typer.Option("all", help="all, active, inactive or archived"),
    search: str | None = typer.Option(None, help="Substring of title, description or provider"),
    category: str | None = typer.Option(None, help="Only opportunities carrying this tag"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """List opportunities."""

    context = _build_context()
    try:
        items = context.opportunities.list(status=status, search=search, category=category)
        if as_json:
            typer.echo(json.dumps([item.to_dict() for item in items], indent=2))
            return
        table = Table(title=f"Opportunities ({len(items)})")
        for column in ("ID", "Title", "Provider", "Status", "Deadline", "Tags"):
            table.add_column(column)
        for item in items:
            table.add_row(
                item.id,
                item.title,
                item.provider,
                item.status,
                _format_ms(item.deadline) if item.deadline else "Not sure",
                ", ".join(item.category_tags),
            )
        console.print(table)
    finally:
        context.close()


@app.command()
def show(opportunity_id: str = typer.Argument(..., help="Opportunity ID")) -> None:
    """Print a single opportunity as JSON."""

    context = _build_context()
    try:
        typer.echo(json.dumps(context.opportunities.get(opportunity_id).to_dict(), indent=2))
    finally:
        context.close()


@app.command()
def create(
    title: str = typer.Option(..., help="Opportunity title"),
    provider: str = typer.Option(..., help="Organisation running the opportunity"),
    apply_url: str = typer.Option(..., help="Application link"),
    tags: str = typer.Option(..., help="Comma-separated category tags"),
    description: str = typer.Option("", help="Short description"),
    description_full: str = typer.Option("", help="Full description"),
    deadline: str | None = typer.Option(None, help="Deadline YYYY-MM-DD"),
    deadline_not_sure: bool = typer.Option(False, help="Deadline not known yet"),
    logo_url: str | None = typer.Option(None, help="Logo URL; derived from the link if omitted"),
    groups: str = typer.Option("", help="Comma-separated applicable groups"),
    status: str = typer.Option("active", help="active, inactive or archived"),
    actor: str = ActorOption,
) -> None:
    """Create an opportunity."""

    deadline_ms = None
    if deadline:
        try:
            parsed = datetime.fromisoformat(deadline).replace(tzinfo=UTC)
        except ValueError as exc:
            raise ValidationError(f"Invalid deadline {deadline!r}; expected YYYY-MM-DD") from exc
        deadline_ms = int(parsed.timestamp() * 1000)
    fields = {
        "title": title,
        "provider": provider,
        "apply_url": apply_url,
        "category_tags": tags,
        "deadline": deadline_ms,
    }
    validate_opportunity_fields(fields, deadline_not_sure=deadline_not_sure)

    context = _build_context()
    try:
        opportunity_id = context.opportunities.create(
            OpportunityDraft(
                title=title,
                description=description,
                description_full=description_full,
                provider=provider,
                apply_url=apply_url,
                category_tags=tags,
                status=status,
                logo_url=logo_url,
                deadline=deadline_ms,
                applicable_groups=groups,
            ),
            actor,
        )
        typer.echo(opportunity_id)
    finally:
        context.close()


@app.command()
def archive(
    opportunity_id: str = typer.Argument(..., help="Opportunity ID"),
    actor: str = ActorOption,
) -> None:
    """Archive an opportunity."""

    context = _build_context()
    try:
        context.opportunities.archive(opportunity_id, actor)
        typer.echo(f"Archived {opportunity_id}")
    finally:
        context.close()


@app.command()
def duplicate(
    opportunity_id: str = typer.Argument(..., help="Opportunity ID"),
    actor: str = ActorOption,
) -> None:
    """Duplicate an opportunity and print the new ID."""

    context = _build_context()
    try:
        typer.echo(context.opportunities.duplicate(opportunity_id, actor))
    finally:
        context.close()


@app.command()
def delete(
    opportunity_id: str = typer.Argument(..., help="Opportunity ID"),
    actor: str = ActorOption,
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt"),
) -> None:
    """Permanently delete an opportunity."""

    if not yes:
        typer.confirm(f"Delete {opportunity_id}? This cannot be undone", abort=True)
    context = _build_context()
    try:
        context.opportunities.delete(opportunity_id, actor)
        typer.echo(f"Deleted {opportunity_id}")
    finally:
        context.close()


@app.command()
def submissions(
    status: str | None = typer.Option(None, help="pending, approved or rejected"),
) -> None:
    """List visitor submissions, newest first."""

    context = _build_context()
    try:
        table = Table(title="Submissions")
        for column in ("ID", "Name", "Type", "Link", "Submitted by", "Status", "Created"):
            table.add_column(column)
        for item in context.submissions.list(status):
            table.add_row(
                item.id,
                item.opportunity_name,
                item.opportunity_type,
                item.link,
                item.user_twitter or item.user_name or "-",
                item.status,
                _format_ms(item.created_at),
            )
        console.print(table)
    finally:
        context.close()


@app.command()
def review(
    submission_id: str = typer.Argument(..., help="Submission ID"),
    status: str = typer.Argument(..., help="approved, rejected or pending"),
    actor: str = ActorOption,
) -> None:
    """Set the review status of a submission."""

    context = _build_context()
    try:
        context.submissions.update_status(submission_id, status, actor)
        typer.echo(f"Submission {submission_id} -> {status}")
    finally:
        context.close()


@app.command("admins-add")
def admins_add(
    email: str = typer.Argument(..., help="Admin email"),
    name: str = typer.Argument(..., help="Display name"),
    role: str = typer.Option("admin", help="editor, manager or admin"),
) -> None:
    """Register (or reactivate) an admin."""

    context = _build_context()
    try:
        typer.echo(context.registry.add(email, name, role))
    finally:
        context.close()


@app.command("admins-list")
def admins_list() -> None:
    """List registered admins."""

    context = _build_context()
    try:
        table = Table(title="Admins")
        for column in ("ID", "Email", "Name", "Role", "Active", "Last login"):
            table.add_column(column)
        for admin in context.registry.list():
            table.add_row(
                admin.id,
                admin.email,
                admin.name,
                admin.role,
                "yes" if admin.is_active else "no",
                _format_ms(admin.last_login),
            )
        console.print(table)
    finally:
        context.close()


@app.command("admins-deactivate")
def admins_deactivate(admin_id: str = typer.Argument(..., help="Admin ID")) -> None:
    """Deactivate an admin without deleting the record."""

    context = _build_context()
    try:
        context.registry.deactivate(admin_id)
        typer.echo(f"Deactivated {admin_id}")
    finally:
        context.close()


@app.command()
def favicon(url: str = typer.Argument(..., help="Application link")) -> None:
    """Resolve the favicon for a link, falling back to the placeholder."""

    context = _build_context()
    try:
        typer.echo(context.favicons.resolve(url))
    finally:
        context.close()


@app.command("upload-logo")
def upload_logo(path: Path = typer.Argument(..., exists=True, dir_okay=False)) -> None:
    """Upload a logo image to the image host and print its URL."""

    client = ImageHostClient(Config.from_env())
    try:
        typer.echo(client.upload_file(path))
    finally:
        client.close()


def main() -> None:  # pragma: no cover - CLI entry point
    try:
        app()
    except ConfigError as exc:
        typer.echo(f"Configuration error: {exc}")
        raise SystemExit(1) from exc
    except (ValidationError, NotFoundError, AuthorizationError, UpstreamError) as exc:
        typer.echo(f"Error: {exc}")
        raise SystemExit(1) from exc


if __name__ == "__main__":  # pragma: no cover
    main()
