"""
Entry point for the Unfair Chess game server.

    python web_main.py                  ← API on :8000, single worker

Reads config.yaml from the working directory (see config.example.yaml);
without one the server runs with defaults.
"""

import sys

import uvicorn

from unfairchess.cli.display import console, print_banner
from unfairchess.config import Config, load_config

HOST = "0.0.0.0"
PORT = 8000


def startup_config(path: str = "config.yaml") -> Config:
    """Same fallback as create_app: a missing file means defaults."""
    try:
        return load_config(path)
    except FileNotFoundError:
        console.print(f"[yellow]No {path}, running with defaults (random-move AI only).[/]")
        return Config()


if __name__ == "__main__":
    try:
        config = startup_config()
    except ValueError as exc:
        console.print(f"[red]Config error:[/] {exc}")
        sys.exit(1)

    print_banner(config, HOST, PORT)
    # Per-record locks live in this process, so exactly one worker.
    uvicorn.run(
        "unfairchess.web.app:create_app",
        factory=True,
        host=HOST,
        port=PORT,
        workers=1,
    )
