"""
Plain-text transcripts of every prompt sent to a model and the raw reply.

A game is played over many HTTP requests, so transcripts are keyed by game id
and appended to, never rewritten. Files go under <log_dir>/conversations/.
Turned on by ai.log_conversations.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from unfairchess.providers.base import Message

_RULE = "=" * 80
_DIVIDER = "-" * 80


class ConversationLogger:
    def __init__(self, log_dir: Path) -> None:
        self._dir = log_dir / "conversations"
        self._dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, game_id: str) -> Path:
        cleaned = "".join(ch if ch.isalnum() or ch in "_-" else "_" for ch in game_id)
        return self._dir / f"game_{cleaned}.log"

    def log_request(
        self,
        *,
        game_id: str,
        strategy: str,
        provider: str,
        attempt: int,
        messages: list[Message],
    ) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        parts = [f"\n{_RULE}\n  {stamp}  {strategy} via {provider}, attempt {attempt}\n{_RULE}"]
        parts.extend(f"\n[{m.role.upper()}]\n{m.content}" for m in messages)
        self._append(game_id, parts)

    def log_response(self, *, game_id: str, provider: str, raw: str) -> None:
        self._append(game_id, [f"\n{_DIVIDER}", f"[REPLY from {provider}]", raw or "(empty)", _DIVIDER])

    def _append(self, game_id: str, parts: list[str]) -> None:
        with self.path_for(game_id).open("a", encoding="utf-8") as fh:
            fh.write("\n".join(parts) + "\n")
