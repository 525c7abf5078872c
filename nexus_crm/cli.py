"""Nexus CRM CLI - Main entry point."""

import asyncio
import json
import logging
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .context import AppContext
from .store.collections import ENTITY_TYPES

app = typer.Typer(
    name="nexus",
    help="Nexus CRM - local-first records with remote sync and automation",
    no_args_is_help=True,
)
console = Console()

SEVERITY_STYLES = {"info": "cyan", "success": "green", "warning": "yellow", "alert": "bold red"}


def _build_context() -> AppContext:
    return AppContext.build()


def _output_result(result: dict[str, Any]) -> None:
    console.print_json(json.dumps(result, default=str, indent=2))


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine activity"),
):
    """Nexus CRM command line."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


# ============================================================================
# Session Commands
# ============================================================================


@app.command("login")
def login(
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True, help="Account password"),
):
    """Sign in to the remote store and pull every collection."""
    from .auth import AuthError

    ctx = _build_context()
    if not ctx.settings.remote_configured:
        console.print("[red]Remote store not configured. Set NEXUS_REMOTE_URL and NEXUS_REMOTE_ANON_KEY.[/red]")
        raise typer.Exit(1)

    async def _login():
        ctx.store.hydrate()
        try:
            session = await ctx.sessions.sign_in(email, password)
            await ctx.tasks.drain()
            return session
        finally:
            await ctx.aclose()

    try:
        session = asyncio.run(_login())
    except AuthError as e:
        console.print(f"[red]Login failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        Panel(
            f"[bold green]Signed in as {session.email or session.user_id}[/bold green]\n\n"
            f"Organization: {session.organization_id or 'N/A'}\n"
            f"Role: {session.role or 'N/A'}",
            title="Login",
        )
    )


@app.command("logout")
def logout():
    """Forget the stored session."""
    ctx = _build_context()
    ctx.sessions.sign_out()
    ctx.engine.dispose()
    console.print("[green]Signed out[/green]")


@app.command("status")
def status():
    """Show session, remote and bridge status."""
    ctx = _build_context()
    session = ctx.sessions.session

    table = Table(title="Nexus Status")
    table.add_column("Setting", style="cyan")
    table.add_column("Status", style="green")

    env_style = "bold red" if ctx.settings.is_production else "green"
    table.add_row("Environment", f"[{env_style}]{ctx.settings.environment}[/{env_style}]")
    table.add_row("Remote store", ctx.settings.remote_url or "[red]Not configured[/red]")
    if session is None:
        table.add_row("Session", "[dim]Signed out[/dim]")
    elif ctx.sessions.has_live_session():
        table.add_row("Session", f"{session.email} ({session.expires_in_seconds // 60}m left)")
    else:
        table.add_row("Session", "[yellow]Expired (refreshes on next pull)[/yellow]")
    table.add_row("Organization", (session.organization_id if session else None) or "N/A")
    if session and ctx.sessions.is_platform_admin(ctx.settings.super_admin_emails_set):
        table.add_row("Scope", "[bold]All organizations[/bold]")

    async def _bridge_status():
        try:
            return await ctx.bridge.status()
        finally:
            await ctx.aclose()

    bridge = asyncio.run(_bridge_status())
    for service in ("server", "whatsapp", "smtp"):
        value = str(bridge.get(service, "OFFLINE"))
        style = "green" if value.upper() in {"ONLINE", "CONNECTED", "READY"} else "red"
        table.add_row(f"Bridge {service}", f"[{style}]{value}[/{style}]")

    console.print(table)


# ============================================================================
# Data Commands
# ============================================================================


def _print_notifications(ctx: AppContext) -> None:
    items = ctx.notifications.notifications
    if not items:
        console.print("[dim]No notifications[/dim]")
        return
    table = Table(title=f"Notifications ({ctx.notifications.unread_count()} unread)")
    table.add_column("Severity")
    table.add_column("Title", style="white")
    table.add_column("Message")
    for n in items:
        style = SEVERITY_STYLES.get(n.severity, "white")
        table.add_row(f"[{style}]{n.severity}[/{style}]", n.title, n.message)
    console.print(table)


@app.command("pull")
def pull(
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Refresh every collection from the remote store."""
    ctx = _build_context()

    async def _pull():
        try:
            result = await ctx.start()
            await ctx.tasks.drain()
            return result
        finally:
            await ctx.aclose()

    result = asyncio.run(_pull())
    if result is None or result.skipped:
        console.print("[yellow]No live session; local data unchanged. Run 'nexus login'.[/yellow]")
        raise typer.Exit(1)

    if json_output:
        _output_result(result.model_dump(mode="json"))
        return

    table = Table(title="Pull Result")
    table.add_column("Table", style="cyan")
    table.add_column("Status")
    table.add_column("Rows", justify="right")
    for name in sorted(result.tables):
        r = result.tables[name]
        state = "[green]ok[/green]" if r.ok else f"[red]{r.error_kind}[/red]"
        table.add_row(name, state, str(r.count) if r.ok else "-")
    console.print(table)
    _print_notifications(ctx)


@app.command("notifications")
def notifications():
    """Sync, then list the notifications raised during it."""
    ctx = _build_context()

    async def _run():
        try:
            await ctx.start()
            await ctx.tasks.drain()
        finally:
            await ctx.aclose()

    asyncio.run(_run())
    _print_notifications(ctx)


@app.command("collections")
def collections(
    entity_type: str = typer.Argument(None, help="Show the records of one collection"),
    limit: int = typer.Option(20, "--limit", "-l", help="Max records to show"),
):
    """List local collections and their sizes."""
    ctx = _build_context()
    ctx.store.hydrate()
    ctx.engine.dispose()

    if entity_type:
        if entity_type not in ENTITY_TYPES:
            console.print(f"[red]Unknown collection: {entity_type}[/red]")
            raise typer.Exit(1)
        _output_result({"type": entity_type, "items": ctx.store.get(entity_type)[:limit]})
        return

    table = Table(title="Local Collections")
    table.add_column("Collection", style="cyan")
    table.add_column("Records", justify="right")
    for name in ENTITY_TYPES:
        table.add_row(name, str(ctx.store.count(name)))
    console.print(table)


@app.command("broadcast")
def broadcast(
    template: str = typer.Option(..., "--template", "-t", help="Message template ({name}, {company}, ...)"),
    collection: str = typer.Option("clients", "--collection", "-c", help="clients or leads"),
    channel: str = typer.Option("whatsapp", "--channel", help="whatsapp or email"),
    subject: str = typer.Option(None, "--subject", help="Email subject"),
    status_filter: str = typer.Option(None, "--status", help="Only targets with this status"),
    min_delay: float = typer.Option(None, "--min-delay", help="Min seconds between sends"),
    max_delay: float = typer.Option(None, "--max-delay", help="Max seconds between sends"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Send a personalized message to every target, paced with random gaps."""
    if collection not in ("clients", "leads"):
        console.print("[red]Collection must be 'clients' or 'leads'[/red]")
        raise typer.Exit(1)
    if channel not in ("whatsapp", "email"):
        console.print("[red]Channel must be 'whatsapp' or 'email'[/red]")
        raise typer.Exit(1)

    ctx = _build_context()
    ctx.store.hydrate()
    targets = ctx.store.get(collection)
    if status_filter:
        targets = [t for t in targets if t.get("status") == status_filter]
    if min_delay is not None:
        ctx.dispatcher.min_delay_seconds = min_delay
    if max_delay is not None:
        ctx.dispatcher.max_delay_seconds = max(max_delay, ctx.dispatcher.min_delay_seconds)

    if not force and not typer.confirm(f"Send to up to {len(targets)} {collection} via {channel}?"):
        console.print("[yellow]Cancelled[/yellow]")
        ctx.engine.dispose()
        raise typer.Exit(0)

    async def _broadcast():
        try:
            job = ctx.dispatcher.start(
                targets,
                template,
                ctx.messaging.deliver_fn(channel, subject),
                channel=channel,
                actor=ctx.sessions.current_actor(),
            )
            try:
                async for progress in job.stream():
                    console.print(f"[dim]{progress.status_text}[/dim]")
            except asyncio.CancelledError:
                job.cancel()
                raise
            await job.wait()
            await ctx.tasks.drain()
            return job.progress
        finally:
            await ctx.aclose()

    try:
        progress = asyncio.run(_broadcast())
    except KeyboardInterrupt:
        console.print("\n[yellow]Broadcast cancelled[/yellow]")
        raise typer.Exit(1)

    style = "green" if progress.state == "completed" else "yellow"
    console.print(
        Panel(
            f"[{style}]{progress.state.title()}[/{style}]\n\n"
            f"Targets: {progress.total}\nSent: {progress.sent}\nFailed: {progress.failed}",
            title="Broadcast",
        )
    )


@app.command("restore-defaults")
def restore_defaults(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Reset every local collection to its built-in defaults."""
    if not force and not typer.confirm("Reset all local collections?"):
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(0)

    ctx = _build_context()

    async def _restore():
        try:
            ctx.store.hydrate()
            ctx.data.restore_defaults(ctx.sessions.current_actor())
            await ctx.tasks.drain()
        finally:
            await ctx.aclose()

    asyncio.run(_restore())
    console.print("[green]Local collections restored to defaults[/green]")


if __name__ == "__main__":
    app()
