"""ServiceHub command line: database setup, maintenance and serving."""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from servicehub.core.errors import PersistenceError
from servicehub.core.services import DatabaseSeeder, DbSessionService, SqlIdentityStore
from servicehub.core.storage import SqlRefreshTokenStore
from servicehub.runtime.config import ConfigData
from servicehub.runtime.context import load_default_config, set_config

console = Console()

app = typer.Typer(
    help="ServiceHub authentication service",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _load_config(config_file: Path | None) -> ConfigData:
    config = load_default_config(config_file)
    set_config(config)
    return config


ConfigOption = typer.Option(
    None, "--config", "-c", help="Path to config.yaml", exists=True, dir_okay=False
)


@app.command("init-db")
def init_db(config_file: Path | None = ConfigOption) -> None:
    """Create tables, roles and the default admin account."""
    config = _load_config(config_file)
    db = DbSessionService(config.database, config.app.environment)

    async def _seed():
        with db.session_scope() as session:
            seeder = DatabaseSeeder(
                SqlIdentityStore(session, config.security),
                config.security,
                config.seed,
            )
            return await seeder.seed()

    try:
        db.create_all()
        report = asyncio.run(_seed())
    except PersistenceError as e:
        console.print(f"[red]❌ Database initialization failed: {e}[/red]")
        raise typer.Exit(code=1) from e
    finally:
        db.dispose()

    table = Table(title="Database initialized")
    table.add_column("Item", style="cyan")
    table.add_column("Result", style="green")
    table.add_row("Roles created", ", ".join(report.roles_created) or "none")
    table.add_row("Admin user created", "yes" if report.admin_created else "no")
    console.print(table)


@app.command("purge-tokens")
def purge_tokens(config_file: Path | None = ConfigOption) -> None:
    """Delete refresh tokens whose expiry has passed."""
    config = _load_config(config_file)
    db = DbSessionService(config.database, config.app.environment)

    async def _purge() -> int:
        with db.session_scope() as session:
            return await SqlRefreshTokenStore(session).purge_expired()

    try:
        removed = asyncio.run(_purge())
    except PersistenceError as e:
        console.print(f"[red]❌ Failed to purge refresh tokens: {e}[/red]")
        raise typer.Exit(code=1) from e
    finally:
        db.dispose()

    console.print(f"[green]✅ Removed {removed} expired refresh token(s)[/green]")


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the API with uvicorn."""
    import uvicorn

    config = load_default_config()
    uvicorn.run(
        "servicehub.api.http.app:create_app",
        factory=True,
        host=host or config.app.host,
        port=port or config.app.port,
        reload=reload,
        access_log=False,
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
