"""
Rich startup banner for web_main.py.

The server itself only logs; this is the one place that prints formatted
terminal output.
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from unfairchess.config import Config
from unfairchess.personas import BOTS

console = Console(legacy_windows=False)


def print_banner(config: Config, host: str, port: int) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]http://{host}:{port}[/]  [dim](API under /api, docs at /docs)[/]\n"
            f"[dim]Store:[/] {config.server.database_url}\n"
            f"[dim]Logs:[/]  {config.server.log_dir_path / 'unfairchess.log'}",
            title="[bold red] Unfair Chess [/]",
            border_style="red",
            expand=False,
        )
    )
    _print_bot_table()
    _print_ai_chain(config)


def _print_bot_table() -> None:
    table = Table(
        title="Bots",
        show_header=True,
        header_style="bold",
        border_style="dim",
        show_lines=False,
    )
    table.add_column("ID", style="dim", min_width=8)
    table.add_column("Name", min_width=10)
    table.add_column("Personality", style="dim")
    table.add_column("Description")

    for bot in BOTS:
        table.add_row(bot.id, bot.name, bot.personality, bot.description)

    console.print(table)


def _print_ai_chain(config: Config) -> None:
    refs = config.ai.model_chain()
    if not refs:
        console.print("  [yellow]No AI models configured:[/] bots play random legal moves.\n")
        return
    for i, ref in enumerate(refs):
        tag = "primary" if i == 0 else f"fallback:{i}"
        configured = ref.provider in config.providers
        mark = "[green]✓[/]" if configured else "[red]✗ provider not configured[/]"
        console.print(f"  [dim]{tag:<11}[/] {ref.provider}/{ref.model}  {mark}")
    console.print(f"  [dim]{'random':<11}[/] uniform legal move\n")
