"""Main CLI for entity agents."""

import asyncio
from pathlib import Path
from typing import Dict, Tuple

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.config import load_entities, load_settings
from ..core.entity import Entity
from ..core.models import TaskResult
from ..core.registry import EntityRegistry
from ..errors import UnknownEntityError, UnknownOperationError
from ..utils.subprocess_utils import check_command_exists


console = Console()


@click.group()
@click.option(
    "--config-dir", "-c",
    default="config",
    type=click.Path(path_type=Path),
    help="Directory holding entity-agents.yaml and entities.yaml",
)
@click.pass_context
def cli(ctx, config_dir):
    """Entity Agents - autonomous workers that delegate tasks to the claude CLI."""
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir


def _get_registry(ctx) -> EntityRegistry:
    # Tests pass a prebuilt registry through obj
    if "registry" in ctx.obj:
        return ctx.obj["registry"]

    config_dir = ctx.obj["config_dir"]
    try:
        settings = load_settings(config_dir / "entity-agents.yaml")
        configs = load_entities(config_dir / "entities.yaml")
    except FileNotFoundError as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        ctx.exit(1)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Invalid configuration in {config_dir}:[/]\n{escape(str(e))}")
        ctx.exit(1)

    registry = EntityRegistry.from_definitions(configs, settings)
    ctx.obj["registry"] = registry
    return registry


def _get_entity(ctx, name: str) -> Entity:
    registry = _get_registry(ctx)
    try:
        return registry.create(name)
    except UnknownEntityError as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        ctx.exit(1)


def _parse_params(params: Tuple[str, ...]) -> Dict[str, str]:
    parsed = {}
    for item in params:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got '{item}'", param_hint="--param")
        parsed[key.strip()] = value
    return parsed


def _report(ctx, result: TaskResult) -> None:
    if result.success:
        if result.output:
            console.print(result.output, markup=False)
        console.print(f"[green]✓ Task completed in {result.duration_ms}ms[/]")
        if result.commit_hash:
            console.print(f"  Commit: {result.commit_hash}")
        if result.files_changed:
            console.print(f"  Files changed: {len(result.files_changed)}")
        if result.needs_approval:
            console.print(f"[yellow]Approval requested: {escape(result.approval_prompt or '')}[/]")
    else:
        console.print(f"[red]✗ Task failed: {escape(result.output)}[/]")
        ctx.exit(1)


@cli.command("list")
@click.pass_context
def list_entities(ctx):
    """List configured entities."""
    registry = _get_registry(ctx)

    table = Table(title="Entities")
    table.add_column("Name")
    table.add_column("Role")
    table.add_column("Owned paths")
    table.add_column("Operations")

    for name in registry.names():
        config = registry.get_config(name)
        if config is None:
            table.add_row(name, "-", "-", "-")
            continue
        table.add_row(
            escape(config.name),
            escape(config.role),
            escape(", ".join(config.owned_paths)) or "-",
            escape(", ".join(sorted(config.operations))) or "-",
        )

    console.print(table)


@cli.command()
@click.argument("name")
@click.pass_context
def status(ctx, name):
    """Show an entity's status."""
    entity = _get_entity(ctx, name)
    try:
        entity_status = entity.get_status()

        table = Table(title=escape(f"{entity_status.name} - {entity_status.role}"), show_header=False)
        table.add_column("Field")
        table.add_column("Value")
        table.add_row("Tasks completed", str(entity_status.tasks_completed))
        table.add_row("Tasks succeeded", str(entity_status.tasks_succeeded))
        table.add_row("Pending approvals", str(entity_status.pending_approvals))
        table.add_row("Owned paths", escape(", ".join(entity_status.owned_paths)) or "-")
        table.add_row("Running", "yes" if entity_status.is_running else "no")

        engine = entity.settings.engine_executable
        available = check_command_exists(engine)
        table.add_row("Engine", f"{engine} " + ("[green](found)[/]" if available else "[red](not on PATH)[/]"))

        console.print(table)
    finally:
        entity.close()


@cli.command()
@click.argument("name")
@click.argument("task")
@click.pass_context
def work(ctx, name, task):
    """Run a free-form TASK with entity NAME."""
    entity = _get_entity(ctx, name)
    try:
        console.print(f"[bold]{entity.name} working on: {escape(task[:50])}[/]")
        result = asyncio.run(entity.work(task))
    finally:
        entity.close()
    _report(ctx, result)


@cli.command()
@click.argument("name")
@click.argument("operation")
@click.option("--param", "-p", "params", multiple=True, help="Operation parameter as key=value")
@click.pass_context
def run(ctx, name, operation, params):
    """Run a named OPERATION of entity NAME."""
    parsed = _parse_params(params)
    entity = _get_entity(ctx, name)
    try:
        result = asyncio.run(entity.perform(operation, **parsed))
    except (UnknownOperationError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        ctx.exit(1)
    finally:
        entity.close()
    _report(ctx, result)


@cli.command()
@click.argument("name")
@click.pass_context
def issues(ctx, name):
    """List open bugs relevant to entity NAME."""
    entity = _get_entity(ctx, name)
    try:
        relevant = entity.find_relevant_issues()
    finally:
        entity.close()

    if not relevant:
        console.print(f"[dim]No relevant open issues for {entity.name}[/]")
        return

    table = Table(title=f"Issues for {entity.name}")
    table.add_column("#")
    table.add_column("Title")
    table.add_column("Labels")
    for issue in relevant:
        table.add_row(str(issue.number), escape(issue.title), escape(", ".join(issue.labels)))
    console.print(table)


@cli.command()
@click.argument("name")
@click.argument("number", type=int)
@click.pass_context
def fix(ctx, name, number):
    """Have entity NAME fix issue NUMBER."""
    entity = _get_entity(ctx, name)
    try:
        console.print(f"[bold]{entity.name} fixing issue #{number}[/]")
        result = asyncio.run(entity.fix_issue(number))
    finally:
        entity.close()
    _report(ctx, result)


@cli.command()
@click.argument("name")
@click.pass_context
def approvals(ctx, name):
    """Show pending approval requests of entity NAME."""
    entity = _get_entity(ctx, name)
    try:
        pending = entity.approvals.pending
    finally:
        entity.close()

    if not pending:
        console.print("[dim]No pending approvals[/]")
        return

    table = Table(title=f"Pending approvals for {entity.name}")
    table.add_column("ID", no_wrap=True)
    table.add_column("Description")
    table.add_column("Details")
    table.add_column("Options")
    table.add_column("Created")
    for request in pending:
        table.add_row(
            request.id,
            escape(request.description),
            escape(request.details),
            escape(" / ".join(request.options)),
            request.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)


@cli.command()
@click.argument("name")
@click.argument("approval_id")
@click.argument("response")
@click.pass_context
def resolve(ctx, name, approval_id, response):
    """Record RESPONSE to a pending approval request."""
    entity = _get_entity(ctx, name)
    try:
        resolved = entity.approvals.resolve(approval_id, response)
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        ctx.exit(1)
    finally:
        entity.close()

    if resolved is None:
        console.print(f"[red]No pending approval with id {escape(approval_id)}[/]")
        ctx.exit(1)
    console.print(f"[green]✓ {escape(approval_id)}: {escape(response)}[/]")


if __name__ == "__main__":
    cli()
