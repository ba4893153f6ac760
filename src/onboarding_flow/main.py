"""
Onboarding Flow - CLI Entry Point.

Usage:
    onboarding-flow steps [ROLE]          Show the step catalog
    onboarding-flow achievements          List achievements
    onboarding-flow draft --device ID     Inspect a stored draft
    onboarding-flow discard --device ID   Delete a stored draft
    onboarding-flow serve                 Start the HTTP API
    onboarding-flow health                Check configuration
"""

import logging
import sys

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="onboarding-flow",
    help="Onboarding Flow - gamified registration wizard engine.",
    add_completion=False,
)
console = Console()


def setup_logging(level: str = "INFO") -> None:
    """Route engine logs to stderr so they never mix with table output."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    # Quiet down noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    from onboarding_flow.config import get_settings

    setup_logging("DEBUG" if verbose else get_settings().log_level)


def _persistence(device: str):
    from onboarding_flow.config import get_settings
    from onboarding_flow.persistence import DraftPersistence, draft_key
    from onboarding_flow.stores import create_draft_store

    settings = get_settings()
    return DraftPersistence(create_draft_store(settings), draft_key(device, settings.draft_key_prefix))


@app.command()
def steps(
    role: str = typer.Argument(None, help="candidate, sponsor or agency"),
) -> None:
    """Show the ordered steps for a role."""
    from onboarding_flow.catalog import parse_role, steps_for

    try:
        parsed = parse_role(role)
    except ValueError:
        console.print(f"[red]Unknown role: {role}[/red]")
        raise typer.Exit(1)

    title = f"{parsed.value.title()} steps" if parsed else "Shared prefix"
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Phase")
    table.add_column("Points", justify="right")
    table.add_column("Required")

    for i, step in enumerate(steps_for(parsed)):
        name = f"{step.id} [dim](skippable)[/dim]" if step.skippable else step.id
        table.add_row(
            str(i), name, step.phase.value, str(step.point_reward),
            ", ".join(sorted(step.required_fields)),
        )

    console.print(table)


@app.command()
def achievements(
    role: str = typer.Option(None, "--role", "-r", help="Only achievements this role can earn"),
) -> None:
    """List the achievement catalog."""
    from onboarding_flow.catalog import parse_role
    from onboarding_flow.gamification import ACHIEVEMENTS, achievements_for

    try:
        parsed = parse_role(role)
    except ValueError:
        console.print(f"[red]Unknown role: {role}[/red]")
        raise typer.Exit(1)

    entries = achievements_for(parsed) if parsed else list(ACHIEVEMENTS)

    table = Table(title="Achievements")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Points", justify="right")
    table.add_column("Roles")
    for a in entries:
        roles = ", ".join(sorted(r.value for r in a.role_scope)) if a.role_scope else "all"
        table.add_row(a.id, a.name, str(a.point_reward), roles)

    console.print(table)


@app.command()
def draft(
    device: str = typer.Option(..., "--device", "-d", help="Device id the draft belongs to"),
) -> None:
    """Show whether a resumable draft exists for a device."""
    from onboarding_flow.config import get_settings
    from onboarding_flow.gamification import level_of

    settings = get_settings()
    persistence = _persistence(device)
    info = persistence.draft_info()

    if not info.exists:
        console.print(f"[dim]No draft for {device}[/dim]")
        return

    record = persistence.load()
    state = record.state
    level = level_of(state.gamification.points, settings.points_per_level)
    console.print(
        Panel.fit(
            f"Role: [bold]{info.role.value if info.role else '-'}[/bold]\n"
            f"Step: {state.current_step_index}\n"
            f"Points: {state.gamification.points} (level {level})\n"
            f"Saved: {info.saved_at.isoformat()}\n"
            f"Expires in: {info.days_remaining} day(s)",
            title=f"Draft {device}",
            border_style="green",
        )
    )


@app.command()
def discard(
    device: str = typer.Option(..., "--device", "-d", help="Device id the draft belongs to"),
) -> None:
    """Delete the stored draft for a device."""
    _persistence(device).discard()
    console.print(f"Draft for {device} discarded")


@app.command()
def serve(
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload for development"),
) -> None:
    """Start the onboarding HTTP API."""
    import uvicorn

    console.print(f"\n[bold green]Onboarding API[/bold green]")
    console.print(f"Starting server on http://localhost:{port}")
    console.print(f"[dim]Press Ctrl+C to stop[/dim]\n")

    uvicorn.run(
        "onboarding_flow.api:create_app",
        factory=True,
        host="0.0.0.0",
        port=port,
        reload=reload,
    )


@app.command()
def health() -> None:
    """Check configuration and the step catalogs."""
    from onboarding_flow.catalog import Role, total_steps
    from onboarding_flow.config import get_settings

    console.print("\n[bold]Onboarding Flow Health Check[/bold]\n")

    try:
        settings = get_settings()
        console.print("[green]OK[/green] Configuration loaded")
        console.print(f"   Environment: {settings.onboarding_env}")
        console.print(f"   Log level: {settings.log_level}")
        console.print(f"   Draft TTL: {settings.draft_ttl_days} days")

        if settings.supabase_url and settings.supabase_service_role_key:
            console.print("[green]OK[/green] Supabase draft store configured")
        else:
            console.print(f"INFO File draft store at {settings.draft_dir}")

        for role in Role:
            console.print(f"   {role.value}: {total_steps(role)} steps")

        console.print("\n[green]All checks passed![/green]")

    except Exception as e:
        console.print(f"\n[red]FAIL Configuration error: {e}[/red]")
        console.print("[dim]Check your .env file.[/dim]")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from onboarding_flow import __version__

    console.print(f"Onboarding Flow version {__version__}")


if __name__ == "__main__":
    app()
