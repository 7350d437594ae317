"""Token and long-term memory maintenance commands."""

import asyncio
from datetime import timedelta
from pathlib import Path

from rich.console import Console

console = Console()


def token_command(user_id: str, config_path: str | None = None, minutes: int | None = None) -> None:
    """Print a signed token for ``user_id``."""
    from mnemos.config.loader import load_config
    from mnemos.gateway.auth import issue_token

    config = load_config(Path(config_path) if config_path else None)
    if not config.auth.jwt_secret:
        console.print("[red]No JWT secret configured.[/red]")
        console.print("Set auth.jwt_secret in the config file or MNEMOS_JWT_SECRET.")
        raise SystemExit(1)

    lifetime = timedelta(minutes=minutes or config.auth.token_ttl_minutes)
    print(
        issue_token(
            user_id,
            config.auth.jwt_secret,
            algorithm=config.auth.algorithm,
            expires_delta=lifetime,
        )
    )


def backfill_command(config_path: str | None = None, limit: int = 500) -> None:
    """Embed and index persisted turns that have no vector yet."""
    from mnemos.config.loader import load_config
    from mnemos.embeddings.factory import create_embedding_client
    from mnemos.embeddings.service import EmbeddingService
    from mnemos.memory.ltm import LongTermMemory
    from mnemos.memory.store import MessageStore
    from mnemos.memory.writer import BackgroundMemoryWriter
    from mnemos.services import create_vector_store

    config = load_config(Path(config_path) if config_path else None)
    mem = config.memory
    if mem.vector_store.backend == "memory":
        console.print("[red]Backfill needs a persistent vector store.[/red]")
        console.print(
            "The memory backend lives only inside the server process; "
            "turns indexed here would be lost on exit."
        )
        raise SystemExit(1)

    store = MessageStore(
        Path(mem.storage_path).expanduser(),
        max_attempts=mem.storage_retries,
        backoff=mem.storage_backoff,
    )
    writer = BackgroundMemoryWriter(
        store,
        EmbeddingService(create_embedding_client(config), dimension=mem.vector_store.dimension),
        LongTermMemory(create_vector_store(config), overfetch=mem.retrieval.overfetch),
    )

    with console.status("Indexing unembedded turns..."):
        indexed = asyncio.run(writer.backfill(limit=limit, older_than=timedelta(0)))

    console.print(f"[green]Indexed {indexed} turn(s) into long-term memory[/green]")
