"""Command line front-end for gus-notes."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Annotated, Any, TypeVar

import typer
from dotenv import load_dotenv

from .config import Settings, load_settings
from .errors import GusNotesError, SourceParseError
from .gus.models import EpicPayload, WorkItem
from .gus.text import status_category, work_locator_url
from .helpers import get_operations, login
from .logging_config import get_logger, mask_secret, setup_logging
from .omnifocus import (
    Project,
    Tag,
    parse_block_config,
    resolve_project,
    resolve_tag,
    source_label,
)
from .resolve import resolve_name

logger = get_logger("cli")

T = TypeVar("T")

app = typer.Typer(
    name="gus-notes",
    help="GUS work items and saved queries from the command line.",
    add_completion=False,
)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning package errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except GusNotesError as e:
        logger.debug("Command failed", exc_info=True)
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None


def _settings() -> Settings:
    try:
        return load_settings()
    except GusNotesError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None


def _format_item(item: WorkItem) -> str:
    status = f"{item.status} ({status_category(item.status)})" if item.status else "-"
    return f"{item.name}\t{status}\t{item.subject}"


@app.callback()
def main(
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", "-l", help="Log level (default: from LOG_LEVEL or INFO)"),
    ] = None,
) -> None:
    """GUS work items and saved queries from the command line."""
    load_dotenv()
    setup_logging(log_level)


@app.command("login")
def login_command() -> None:
    """Log in through the browser and cache the token."""
    credential = _run(login(_settings()))
    typer.echo(f"Logged in to {credential.instance_url}")


@app.command()
def whoami() -> None:
    """Print the current user's id."""

    async def _whoami() -> str:
        async with get_operations(_settings()) as ops:
            return await ops.current_user_id()

    typer.echo(_run(_whoami()))


@app.command()
def work(
    names: Annotated[list[str], typer.Argument(help="Work item numbers, e.g. W-12345")],
    links: Annotated[bool, typer.Option("--links", help="Print work locator URLs")] = False,
) -> None:
    """Show work items by name."""

    async def _work():
        async with get_operations(_settings()) as ops:
            return await ops.fetch_work_items_by_names(names)

    lookup = _run(_work())
    if not lookup.items:
        typer.echo(f"Work items not found: {', '.join(names)}", err=True)
        raise typer.Exit(code=1)
    if lookup.missing:
        typer.echo(f"Work items not found: {', '.join(lookup.missing)}", err=True)
    for item in lookup.items:
        typer.echo(_format_item(item))
        if links:
            typer.echo(f"  {work_locator_url(item.name)}")


@app.command()
def query(
    soql: Annotated[str, typer.Argument(help="SOQL query; ${me}, ${team} and ${product_tag} are filled in")],
    team: Annotated[str | None, typer.Option("--team", help="Value for ${team}")] = None,
    product_tag: Annotated[
        str | None, typer.Option("--product-tag", help="Value for ${product_tag}")
    ] = None,
) -> None:
    """Run a SOQL query over work items."""

    async def _query():
        async with get_operations(_settings()) as ops:
            rendered = await ops.render_query_template(soql, team=team, product_tag=product_tag)
            logger.debug("Rendered query: %s", rendered)
            return await ops.query_work_items(rendered)

    items = _run(_query())
    if not items:
        typer.echo("No work items found.")
        return
    for item in items:
        typer.echo(_format_item(item))


@app.command("search-tags")
def search_tags(term: Annotated[str, typer.Argument(help="Product tag name prefix")]) -> None:
    """Search product tags by name."""

    async def _search():
        async with get_operations(_settings()) as ops:
            return await ops.search_product_tags(term)

    for result in _run(_search()):
        typer.echo(f"{result.id}\t{result.name}")


@app.command("search-epics")
def search_epics(
    term: Annotated[str, typer.Argument(help="Epic name prefix")],
    all_teams: Annotated[
        bool, typer.Option("--all-teams", help="Do not restrict to your scrum teams")
    ] = False,
) -> None:
    """Search epics by name."""

    async def _search():
        async with get_operations(_settings()) as ops:
            return await ops.search_epics(term, restrict_to_my_teams=not all_teams)

    for result in _run(_search()):
        typer.echo(f"{result.id}\t{result.name}")


@app.command("create-epic")
def create_epic(
    name: Annotated[str, typer.Argument(help="Epic name")],
    description: Annotated[
        str | None, typer.Option("--description", "-d", help="Epic description")
    ] = None,
) -> None:
    """Create an epic."""

    async def _create():
        async with get_operations(_settings()) as ops:
            return await ops.create_epic(EpicPayload(name=name, description=description))

    epic = _run(_create())
    typer.echo(f"Created epic {epic.name}: {epic.url}")


@app.command()
def resolve(
    query: Annotated[str, typer.Argument(help="Name to resolve")],
    candidates: Annotated[list[str], typer.Argument(help="Known names")],
    label: Annotated[str, typer.Option("--label", help="Entity label for messages")] = "project",
) -> None:
    """Resolve a name against a list of candidates."""
    try:
        typer.echo(resolve_name(query, candidates, label))
    except GusNotesError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None


@app.command("omnifocus-source")
def omnifocus_source(
    block: Annotated[
        str, typer.Argument(help="Block text: a source line, optionally followed by showCompleted")
    ],
    known: Annotated[
        list[str] | None,
        typer.Option("--known", help="Known project or tag name to resolve against (repeatable)"),
    ] = None,
) -> None:
    """Parse an OmniFocus block and print the task source it names."""
    try:
        config = parse_block_config(block)
        if config is None:
            raise SourceParseError("No task source given")
        source = config.source
        if known and isinstance(source, Project):
            source = Project(resolve_project(source.name, known))
        elif known and isinstance(source, Tag):
            source = Tag(resolve_tag(source.name, known))
    except GusNotesError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None

    typer.echo(source_label(source))
    typer.echo(f"show completed: {'yes' if config.show_completed else 'no'}")


@app.command("config")
def show_config() -> None:
    """Print the effective configuration."""
    settings = _settings()
    gus = settings.gus
    sections: list[tuple[str, list[tuple[str, str]]]] = [
        (
            "GUS",
            [
                ("Instance", gus.base_url),
                ("Client ID", gus.client_id),
                ("Redirect URI", gus.redirect_uri),
                ("Scopes", gus.scopes),
                ("API Version", gus.api_version),
                ("Default Team", gus.default_team or "(not set)"),
                ("Default Product Tag", gus.default_product_tag or "(not set)"),
            ],
        ),
        (
            "Login",
            [
                ("Callback Port", str(settings.callback_port or gus.redirect_port or "(default)")),
                ("Timeout", f"{settings.login_timeout:g}s"),
                ("Token Max Age", f"{settings.token_max_age_hours:g}h"),
            ],
        ),
    ]

    storage_items = [("Type", settings.token_storage)]
    if settings.token_storage == "file":
        storage_items.append(("Settings File", str(settings.settings_file)))
    elif settings.token_storage == "redis":
        storage_items.append(("Redis URL", mask_secret(settings.redis_url, keep=8)))
    storage_items.append(
        ("Encryption Key", mask_secret(settings.storage_encryption_key))
    )
    sections.append(("Storage", storage_items))

    for section_name, items in sections:
        typer.echo(f"[{section_name}]")
        for key, value in items:
            typer.echo(f"  {key:<20} {value}")


if __name__ == "__main__":
    app()
