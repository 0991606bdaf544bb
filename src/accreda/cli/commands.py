"""CLI commands for Accreda.

Commands:
- init-db: Create the database and seed the skill catalog
- progress: Show an EIT's progress and category breakdown
- set-tier: Change a user's subscription tier
- export-csaw: Write an EIT's filled CSAW worksheet
- serve: Run the Web API
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from accreda.config.app_config import get_plan_limits, load_app_config
from accreda.core.progress import ProgressService
from accreda.core.skills import SkillsService
from accreda.db import accounts_repository, subscriptions_repository
from accreda.db.database import init_db as do_init_db
from accreda.realtime.feed import ChangeFeed
from accreda.reports.csaw import CsawExportError, export_csaw

app = typer.Typer(
    name="accreda",
    help="EIT progress tracking, supervisor connections and CSAW export.",
    no_args_is_help=True,
)

console = Console()


def _setup_db() -> None:
    do_init_db(Path(load_app_config().paths["db_path"]))


def _resolve_user_or_exit(email: str) -> str:
    """Resolve an email to an identity id, or exit with an error."""
    user = accounts_repository.get_auth_user_by_email(email)
    if user is None:
        console.print(f"[red]✗ No account for {email}[/red]")
        raise typer.Exit(code=1)
    return user.id


@app.command(name="init-db")
def init_db() -> None:
    """Create the database schema and seed the skill catalog."""
    db_path = Path(load_app_config().paths["db_path"])
    do_init_db(db_path)
    console.print(f"[green]✓ Database ready[/green] [dim]{db_path}[/dim]")


@app.command()
def progress(
    email: str = typer.Argument(..., help="EIT account email"),
) -> None:
    """Show overall progress and per-category completion for an EIT."""
    _setup_db()
    user_id = _resolve_user_or_exit(email)

    async def _compute():
        feed = ChangeFeed()
        skills = SkillsService(user_id, feed)
        service = ProgressService(user_id, skills, feed)
        snapshot = await service.refresh()
        return snapshot, skills.category_progress()

    snapshot, categories = asyncio.run(_compute())

    header = (
        f"[bold]{snapshot.overall_progress}%[/bold] overall\n"
        f"Skills: {snapshot.completed_skills}/{snapshot.total_skills} | "
        f"Documented: {snapshot.documented_experiences}/{snapshot.total_experiences} | "
        f"Approved: {snapshot.supervisor_approvals}/{snapshot.total_approvals}"
    )
    console.print(Panel(header, title=f"[bold]{email}[/bold]", expand=False))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Category", style="cyan")
    table.add_column("Completed", justify="center")
    table.add_column("%", justify="right")
    for category in categories:
        table.add_row(
            category["name"],
            f"{category['completed']}/{category['total']}",
            f"{category['percentage']}%",
        )
    console.print(table)


@app.command(name="set-tier")
def set_tier(
    email: str = typer.Argument(..., help="Account email"),
    tier: str = typer.Argument(..., help="Tier: free, pro, enterprise"),
) -> None:
    """Change a user's subscription tier."""
    _setup_db()
    user_id = _resolve_user_or_exit(email)
    try:
        subscriptions_repository.set_tier(user_id, tier)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    limits = get_plan_limits(tier)
    console.print(f"[green]✓ {email} is now on {tier}[/green]")
    console.print(f"  [dim]sao_limit:[/dim] {limits.sao_limit}")
    console.print(f"  [dim]eit_limit:[/dim] {limits.eit_limit}")


@app.command(name="export-csaw")
def export_csaw_cmd(
    email: str = typer.Argument(..., help="EIT account email"),
    output: Path = typer.Option(Path("csaw.pdf"), "--output", "-o", help="Output PDF path"),
    template: Path | None = typer.Option(None, "--template", "-t", help="CSAW template PDF"),
) -> None:
    """Fill the CSAW worksheet for an EIT."""
    _setup_db()
    user_id = _resolve_user_or_exit(email)
    try:
        pdf_bytes = export_csaw(user_id, template)
    except CsawExportError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    output.write_bytes(pdf_bytes)
    console.print(f"[green]✓ CSAW written[/green] [dim]{output}[/dim]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the Web API with uvicorn."""
    import uvicorn

    uvicorn.run("accreda.web.api:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
