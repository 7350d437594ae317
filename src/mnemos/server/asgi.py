"""ASGI entry point for running the mnemos server via uvicorn CLI.

    python -m uvicorn mnemos.server.asgi:app --host ... --port ...
"""

from mnemos.config.loader import load_config
from mnemos.server.app import create_app

config = load_config()
app = create_app(config)
