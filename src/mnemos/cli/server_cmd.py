"""Server management commands."""

import logging
import os
import signal
import subprocess
import sys
from pathlib import Path

import httpx
from rich.console import Console
from rich.logging import RichHandler

PID_FILE = Path.home() / ".mnemos" / "server.pid"

console = Console()


def _write_pid(pid: int) -> None:
    """Write PID file."""
    PID_FILE.parent.mkdir(parents=True, exist_ok=True)
    PID_FILE.write_text(str(pid))


def _read_pid() -> int | None:
    """Read PID from file, return None if missing or stale."""
    if not PID_FILE.exists():
        return None
    try:
        pid = int(PID_FILE.read_text().strip())
        # Check if process is still alive
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None


def _remove_pid() -> None:
    """Remove PID file."""
    PID_FILE.unlink(missing_ok=True)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def start_command(
    config_path: str | None = None, detach: bool = False, log_level: str = "info"
) -> None:
    """Start the mnemos API server.

    Args:
        config_path: Optional path to config file
        detach: Run server in background
        log_level: Log level for mnemos and uvicorn
    """
    from mnemos.config.loader import load_config

    existing_pid = _read_pid()
    if existing_pid:
        console.print(f"[yellow]Server already running (PID {existing_pid})[/yellow]")
        console.print("Run [bold]mnemos stop[/bold] first.")
        return

    path = Path(config_path) if config_path else None
    try:
        config = load_config(path)
    except Exception as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise SystemExit(1) from e

    if detach:
        cmd = [
            sys.executable,
            "-m",
            "uvicorn",
            "mnemos.server.asgi:app",
            "--host",
            config.server.host,
            "--port",
            str(config.server.port),
            "--log-level",
            log_level,
        ]
        log_path = Path.home() / ".mnemos" / "server.log"
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_file = log_path.open("a")
        proc = subprocess.Popen(
            cmd,
            stdout=log_file,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )
        _write_pid(proc.pid)
        console.print(f"[green]mnemos server started in background (PID {proc.pid})[/green]")
        console.print(f"  http://{config.server.host}:{config.server.port}")
        console.print(f"  Log: {log_path}")
        console.print("\nRun [bold]mnemos stop[/bold] to stop.")
    else:
        import uvicorn

        from mnemos.server.app import create_app

        configure_logging(log_level)
        app = create_app(config)
        _write_pid(os.getpid())

        console.print(
            f"[green]Starting mnemos server on "
            f"{config.server.host}:{config.server.port}[/green]"
        )
        console.print(f"Model: {config.model.name} ({config.inference.backend})")
        console.print(f"Memory: {config.memory.storage_path}")
        console.print("\nPress Ctrl+C to stop")

        try:
            uvicorn.run(
                app,
                host=config.server.host,
                port=config.server.port,
                log_level=log_level,
            )
        finally:
            _remove_pid()


def stop_command() -> None:
    """Stop the mnemos API server."""
    pid = _read_pid()
    if pid is None:
        console.print("[yellow]No running mnemos server found.[/yellow]")
        return

    try:
        os.kill(pid, signal.SIGTERM)
        console.print(f"[green]Stopped mnemos server (PID {pid})[/green]")
    except ProcessLookupError:
        console.print("[yellow]Server process already exited.[/yellow]")
    finally:
        _remove_pid()


def status_command() -> None:
    """Check mnemos server status."""
    from mnemos.config.loader import load_config

    pid = _read_pid()

    try:
        config = load_config()
        host = config.server.host
        port = config.server.port
    except Exception:
        host = "127.0.0.1"
        port = 8000

    try:
        resp = httpx.get(f"http://{host}:{port}/health", timeout=3.0)
        data = resp.json()
    except Exception:
        if pid:
            console.print(f"[yellow]PID {pid} exists but health check failed.[/yellow]")
        else:
            console.print("[yellow]Server is not running.[/yellow]")
            console.print("Start with: [bold]mnemos start[/bold]")
        return

    writer = data.get("writer", {})
    console.print("[green]Server is running[/green]")
    if pid:
        console.print(f"  PID:         {pid}")
    console.print(f"  URL:         http://{host}:{port}")
    console.print(f"  Model:       {data.get('model', 'unknown')}")
    console.print(f"  Version:     {data.get('version', 'unknown')}")
    console.print(f"  Connections: {data.get('active_connections', 0)}")
    console.print(
        f"  Writeback:   {writer.get('queued', 0)} queued, "
        f"{writer.get('failed', 0)} failed, {writer.get('dropped', 0)} dropped"
    )
