"""CLI entry point for Castellan's administrative surface."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from rich import print as rprint
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from castellan.config import CastellanConfig, load_config
from castellan.config.loader import DEFAULT_CONFIG_TEMPLATE, DEFAULT_POLICY_TEMPLATE
from castellan.errors import AuthzError, InfrastructureError
from castellan.policy import PolicySource
from castellan.service import AuthorizationService

app = typer.Typer(
    name="castellan",
    help="Multi-tenant role-based authorization: manage role assignments and check access.",
)

config_app = typer.Typer(help="Manage Castellan configuration.")
app.add_typer(config_app, name="config")

# Global state
_config: CastellanConfig | None = None

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class _JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _configure_logging(cfg: CastellanConfig) -> None:
    handler = logging.StreamHandler()
    if cfg.log_format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logging.basicConfig(level=_LOG_LEVELS[cfg.log_level], handlers=[handler], force=True)


def _get_config() -> CastellanConfig:
    if _config is None:
        return load_config()
    return _config


def _open_service() -> AuthorizationService:
    cfg = _get_config()
    try:
        return AuthorizationService.from_config(cfg)
    except AuthzError as e:
        _fail(e)


def _fail(e: AuthzError) -> NoReturn:
    """Print an error and exit 1. Infrastructure details go to the log, not the console."""
    if isinstance(e, InfrastructureError):
        logging.getLogger(__name__).error("%s", e, exc_info=e)
    rprint(f"[red]Error:[/red] {escape(e.message)}")
    raise typer.Exit(1)


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to castellan.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    _configure_logging(_config)


@app.command()
def assign(
    user: str = typer.Argument(..., help="User id"),
    role: str = typer.Argument(..., help="Role name from the policy catalog"),
    tenant: str = typer.Argument(..., help="Tenant id"),
) -> None:
    """Assign a role to a user within a tenant."""
    service = _open_service()
    try:
        added = service.assign_role(user, role, tenant)
    except AuthzError as e:
        _fail(e)
    finally:
        service.close()

    if added:
        rprint(f"[green]Assigned[/green] {escape(role)} to {escape(user)} in {escape(tenant)}")
    else:
        rprint(f"[yellow]Already assigned:[/yellow] {escape(role)} to {escape(user)} in {escape(tenant)}")


@app.command()
def remove(
    user: str = typer.Argument(..., help="User id"),
    role: str = typer.Argument(..., help="Role name"),
    tenant: str = typer.Argument(..., help="Tenant id"),
) -> None:
    """Remove a role from a user within a tenant."""
    service = _open_service()
    try:
        removed = service.remove_role(user, role, tenant)
    except AuthzError as e:
        _fail(e)
    finally:
        service.close()

    if removed:
        rprint(f"[green]Removed[/green] {escape(role)} from {escape(user)} in {escape(tenant)}")
    else:
        rprint(f"[yellow]Not assigned:[/yellow] {escape(role)} to {escape(user)} in {escape(tenant)}")


@app.command()
def roles(
    user: str = typer.Argument(..., help="User id"),
    tenant: str = typer.Argument(..., help="Tenant id"),
) -> None:
    """List the roles a user holds within a tenant."""
    service = _open_service()
    try:
        held = service.get_user_roles(user, tenant)
    except AuthzError as e:
        _fail(e)
    finally:
        service.close()

    if not held:
        rprint(f"[yellow]{escape(user)} holds no roles in {escape(tenant)}.[/yellow]")
        return
    table = Table(title=f"Roles for {escape(user)} in {escape(tenant)}")
    table.add_column("Role", style="cyan")
    for name in sorted(held):
        table.add_row(escape(name))
    rprint(table)


@app.command()
def tenants(
    user: str = typer.Argument(..., help="User id"),
    role: str = typer.Argument(..., help="Role name"),
) -> None:
    """List every tenant in which a user holds a role (cross-tenant, admin only)."""
    service = _open_service()
    try:
        found = service.get_user_tenants_for_role(user, role)
    except AuthzError as e:
        _fail(e)
    finally:
        service.close()

    if not found:
        rprint(f"[yellow]{escape(user)} does not hold {escape(role)} in any tenant.[/yellow]")
        return
    table = Table(title=f"Tenants where {escape(user)} is {escape(role)}")
    table.add_column("Tenant", style="cyan")
    for tenant in sorted(found):
        table.add_row(escape(tenant))
    rprint(table)


@app.command()
def check(
    user: str = typer.Argument(..., help="User id"),
    resource: str = typer.Argument(..., help="Resource name"),
    action: str = typer.Argument(..., help="Action name"),
    tenant: str = typer.Argument(..., help="Tenant id"),
) -> None:
    """Check whether a user may perform an action. Exit code 2 means denied."""
    service = _open_service()
    try:
        allowed = service.can_do(user, resource, action, tenant)
    except AuthzError as e:
        _fail(e)
    finally:
        service.close()

    if allowed:
        rprint(f"[green]ALLOW[/green] {escape(user)} {escape(action)} {escape(resource)} in {escape(tenant)}")
        return
    rprint(f"[red]DENY[/red] {escape(user)} {escape(action)} {escape(resource)} in {escape(tenant)}")
    raise typer.Exit(2)


@app.command("available-roles")
def available_roles() -> None:
    """List the roles defined by the policy catalog."""
    cfg = _get_config()
    try:
        source = PolicySource.from_file(cfg.policy.path)
    except AuthzError as e:
        _fail(e)

    table = Table(title=f"Roles ({escape(source.origin)})")
    table.add_column("Role", style="cyan")
    table.add_column("Permissions", style="green")
    for name in source.roles():
        perms = sorted(f"{p.resource}:{p.action}" for p in source.permissions_for(name))
        table.add_row(escape(name), escape(", ".join(perms)))
    rprint(table)


@app.command()
def validate(
    path: str | None = typer.Argument(None, help="Policy document (default: policy.path from config)"),
) -> None:
    """Validate a policy document."""
    target = path or _get_config().policy.path
    try:
        source = PolicySource.from_file(target)
    except AuthzError as e:
        rprint(f"[red]Invalid:[/red] {escape(e.message)}")
        raise typer.Exit(1)
    rprint(f"[green]Valid:[/green] {escape(target)} ({len(source.roles())} roles)")


@app.command()
def policies(
    format: Annotated[
        str, typer.Option("--format", "-f", help="Output format: table or json")
    ] = "table",
) -> None:
    """Show the compiled policy facts and stored assignments."""
    service = _open_service()
    try:
        dump = service.describe()
    finally:
        service.close()

    if format == "json":
        typer.echo(json.dumps(dump, indent=2))
        return

    facts = Table(title=f"Policy Facts ({len(dump['policies'])})")
    for column in ("Role", "Resource", "Action", "Tenant"):
        facts.add_column(column)
    for row in dump["policies"]:
        facts.add_row(*map(escape, row))
    rprint(facts)

    grants = Table(title=f"Assignments ({len(dump['assignments'])})")
    for column in ("User", "Role", "Tenant"):
        grants.add_column(column)
    for row in dump["assignments"]:
        grants.add_row(*map(escape, row))
    rprint(grants)


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing files"),
) -> None:
    """Write castellan.yaml and policies.yaml templates to the current directory."""
    written = []
    for name, template in (
        ("castellan.yaml", DEFAULT_CONFIG_TEMPLATE),
        ("policies.yaml", DEFAULT_POLICY_TEMPLATE),
    ):
        dest = Path(name)
        if dest.exists() and not force:
            rprint(f"[yellow]{name} already exists.[/yellow] Use --force to overwrite.")
            continue
        dest.write_text(template)
        written.append(name)

    if written:
        rprint(
            Panel(
                "\n".join(f"[dim]Created:[/dim] {name}" for name in written),
                title="Config Initialized",
                border_style="green",
            )
        )


@config_app.command("show")
def config_show() -> None:
    """Print the effective configuration."""
    typer.echo(_get_config().model_dump_json(indent=2))


if __name__ == "__main__":
    app()
