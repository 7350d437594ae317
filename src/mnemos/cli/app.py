"""Main CLI application using Typer."""

import typer
from rich.console import Console

from mnemos import __version__

# Create Typer app
app = typer.Typer(
    name="mnemos",
    help="Mnemos - Conversational assistant backend with short- and long-term memory",
    no_args_is_help=True,
)

console = Console()

CONFIG_HELP = "Path to config file (default: ~/.mnemos/mnemos.yaml)"


@app.command()
def version():
    """Show mnemos version."""
    console.print(f"mnemos version {__version__}")


@app.command()
def start(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
    detach: bool = typer.Option(False, "--detach", "-d", help="Run server in background"),
    log_level: str = typer.Option("info", "--log-level", "-l", help="Log level"),
):
    """Start mnemos API server."""
    from mnemos.cli.server_cmd import start_command

    start_command(config_path=config_path, detach=detach, log_level=log_level)


@app.command()
def stop():
    """Stop mnemos API server."""
    from mnemos.cli.server_cmd import stop_command

    stop_command()


@app.command()
def status():
    """Check mnemos server status."""
    from mnemos.cli.server_cmd import status_command

    status_command()


@app.command()
def token(
    user_id: str = typer.Argument(..., help="User id to put in the token subject"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
    minutes: int = typer.Option(None, "--minutes", "-m", help="Token lifetime in minutes"),
):
    """Issue a development token for a user."""
    from mnemos.cli.memory_cmd import token_command

    token_command(user_id=user_id, config_path=config_path, minutes=minutes)


@app.command()
def backfill(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
    limit: int = typer.Option(500, "--limit", "-n", help="Maximum turns to index"),
):
    """Index persisted turns that are missing from long-term memory."""
    from mnemos.cli.memory_cmd import backfill_command

    backfill_command(config_path=config_path, limit=limit)


def main():
    app()


if __name__ == "__main__":
    main()
