"""Command-line interface using Typer."""

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tldw import __version__
from tldw.logging import setup_logging

# Setup logging
setup_logging()

app = typer.Typer(
    name="tldw",
    help="TLDW - video summary service CLI",
    add_completion=False,
)

# Subcommand groups
jobs_app = typer.Typer(help="Maintenance job commands")
users_app = typer.Typer(help="User account commands")
cache_app = typer.Typer(help="Video cache commands")
app.add_typer(jobs_app, name="jobs")
app.add_typer(users_app, name="users")
app.add_typer(cache_app, name="cache")

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"TLDW v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """TLDW - summaries, credits and cache maintenance."""
    pass


@app.command()
def version() -> None:
    """Show the installed version."""
    console.print(f"TLDW v{__version__}")


@app.command()
def health() -> None:
    """Check the health of the running API."""
    import httpx

    from tldw.config import settings

    url = f"http://{settings.api_host}:{settings.api_port}/health/ready"

    try:
        response = httpx.get(url, timeout=10)
        data = response.json()
    except httpx.RequestError as e:
        console.print(f"[bold red]Cannot connect to API: {e}[/bold red]")
        console.print("[dim]Is the API server running?[/dim]")
        raise typer.Exit(code=1)

    table = Table(title="Service Health")
    table.add_column("Component", style="cyan")
    table.add_column("Status")
    table.add_row("Database", "✓" if data.get("database") else "✗")
    if data.get("broker") is not None:
        table.add_row("Broker", "✓" if data["broker"] else "✗")
    console.print(table)

    if not data.get("ready"):
        console.print("[bold yellow]Service not ready[/bold yellow]")
        raise typer.Exit(code=1)
    console.print("[bold green]All services healthy![/bold green]")


@app.command()
def serve() -> None:
    """Run the API server."""
    import uvicorn

    from tldw.config import settings

    uvicorn.run(
        "tldw.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_config=None,
    )


@app.command()
def worker() -> None:
    """Start a Celery worker with the beat scheduler (for development)."""
    console.print("[bold blue]Starting Celery worker...[/bold blue]")

    import subprocess
    import sys

    subprocess.run(
        [
            sys.executable, "-m", "celery", "-A", "tldw.worker",
            "worker", "--beat", "-Q", "maintenance", "--loglevel=info",
        ],
        check=True,
    )


# =============================================================================
# JOBS COMMANDS
# =============================================================================


@jobs_app.command("list")
def jobs_list() -> None:
    """List maintenance jobs and their UTC schedules."""
    from tldw.services.maintenance import DEFAULT_JOBS

    table = Table(title="Maintenance Jobs")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Frequency")
    table.add_column("Schedule (UTC)", style="dim")
    table.add_column("Description")

    for job in DEFAULT_JOBS:
        schedule = ", ".join(f"{k}={v}" for k, v in job.schedule.crontab_kwargs().items())
        table.add_row(job.name, str(job.schedule.frequency), schedule, job.description)

    console.print(table)


@jobs_app.command("run")
def jobs_run(
    name: str = typer.Argument(..., help="Job name, or 'all'"),
) -> None:
    """Run a maintenance job now, in this process."""
    from tldw.services.maintenance import MaintenanceScheduler

    scheduler = MaintenanceScheduler()
    try:
        results = scheduler.run_all() if name == "all" else [scheduler.run(name)]
    except ValueError as e:
        console.print(f"[bold red]{e}[/bold red]")
        console.print(f"[dim]Available jobs: {', '.join(scheduler.job_names)}[/dim]")
        raise typer.Exit(code=1)

    table = Table(title="Job Results")
    table.add_column("Job", style="cyan")
    table.add_column("Status")
    table.add_column("Duration")
    table.add_column("Details")

    for result in results:
        details = result.error or ", ".join(f"{k}={v}" for k, v in result.stats.items())
        table.add_row(
            result.name,
            "[green]✓[/green]" if result.success else "[red]✗[/red]",
            f"{result.duration_ms}ms",
            details,
        )

    console.print(table)
    if not all(r.success for r in results):
        raise typer.Exit(code=1)


# =============================================================================
# USERS COMMANDS
# =============================================================================


@users_app.command("credits")
def users_credits(
    email: str = typer.Argument(..., help="User email"),
    amount: int = typer.Argument(..., help="Credits to grant"),
    reason: str = typer.Option("Admin credit grant", "--reason", "-r", help="Ledger description"),
) -> None:
    """Grant credits to a user."""
    from tldw.db.session import get_session_context
    from tldw.domain.enums import TransactionType
    from tldw.services.ledger import CreditLedger
    from tldw.services.users import get_user_by_email

    if amount <= 0:
        console.print("[bold red]Amount must be a positive number of credits[/bold red]")
        raise typer.Exit(code=1)

    with get_session_context() as session:
        user = get_user_by_email(session, email)
        if user is None:
            console.print(f"[bold red]User not found: {email}[/bold red]")
            raise typer.Exit(code=1)

        CreditLedger(session).add(
            user, amount, TransactionType.ADMIN_ADJUSTMENT, reason, {"granted_by": "cli"}
        )
        session.commit()

        console.print(f"[bold green]Granted {amount} credits to {user.email}[/bold green]")
        console.print(f"[cyan]Balance:[/cyan] {user.credit_balance}")


@users_app.command("show")
def users_show(
    email: str = typer.Argument(..., help="User email"),
) -> None:
    """Show a user's plan and credits."""
    from tldw.db.session import get_session_context
    from tldw.services.users import get_user_by_email

    with get_session_context() as session:
        user = get_user_by_email(session, email)
        if user is None:
            console.print(f"[bold red]User not found: {email}[/bold red]")
            raise typer.Exit(code=1)

        console.print(Panel.fit(
            f"[bold]{user.name}[/bold]\n\n"
            f"[cyan]ID:[/cyan] {user.id}\n"
            f"[cyan]Plan:[/cyan] {user.plan} ({user.subscription_status})\n"
            f"[cyan]Credits:[/cyan] {user.credit_balance}/{user.monthly_allocation}\n"
            f"[cyan]Next reset:[/cyan] {user.next_credit_reset_at:%Y-%m-%d}\n"
            f"[cyan]Summaries:[/cyan] {user.total_summaries}\n"
            f"[cyan]Referral code:[/cyan] {user.referral_code or 'N/A'}",
            title="User Details",
            border_style="blue",
        ))


# =============================================================================
# CACHE COMMANDS
# =============================================================================


@cache_app.command("stats")
def cache_stats(
    limit: int = typer.Option(5, "--limit", "-n", help="Popular videos to show"),
) -> None:
    """Show cache statistics and the most viewed videos."""
    from tldw.db.session import get_session_context
    from tldw.services.users import plan_counts
    from tldw.services.video_cache import VideoCache

    with get_session_context() as session:
        cache = VideoCache(session)
        stats = cache.statistics()

        table = Table(title="Video Cache")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        for key, value in stats.items():
            table.add_row(key.replace("_", " "), str(value))
        for plan, count in plan_counts(session).items():
            table.add_row(f"{plan} users", str(count))
        console.print(table)

        popular = cache.popular(limit)
        if popular:
            videos = Table(title="Popular Videos")
            videos.add_column("Video", style="dim")
            videos.add_column("Title")
            videos.add_column("Views", justify="right")
            videos.add_column("Hit rate", justify="right")
            for video in popular:
                videos.add_row(
                    video.video_id, video.title, str(video.total_views), f"{video.cache_hit_rate}%"
                )
            console.print(videos)


if __name__ == "__main__":
    app()
