"""
LLMOpponent: an unfair chess opponent backed by any LLMProvider.

Prompt design:
  - One-line response format "<from> <to> <comment>", e.g. "e7 e5 Tremble."
    The model is told it may break the rules; the resolver enforces the
    only rules that matter (no king captures, a piece must be moved).
  - Legal moves are listed anyway so an honest move is always close at hand.
  - Recent comments are listed so the persona does not repeat itself.
  - Each call is bounded by move_timeout; a slow provider becomes a
    ProviderError and the chain moves on.
"""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING

from unfairchess.personas import SILENT_COMMENT, personality_prompt
from unfairchess.players.base import NoProposal, Opponent, Proposal, TurnState
from unfairchess.providers.base import LLMProvider, Message, ProviderError

if TYPE_CHECKING:
    from unfairchess.conv_logger import ConversationLogger

# --------------------------------------------------------------------------- #
# Prompt templates                                                             #
# --------------------------------------------------------------------------- #

_SYSTEM = """\
You are {name}, playing Unfair Chess as {color}.
{personality}

Rules:
1. Output format: "fromSquare toSquare comment" (e.g. "e7 e5 Your pieces tremble before me")
2. You CAN make illegal moves (teleport pieces, move through others, etc.)
3. You CANNOT capture any King directly.
4. You CANNOT remove your own King.
5. Your comment MUST be unique - never repeat yourself.
6. Keep comments under 100 characters.

Output EXACTLY one line."""

_USER = """\
Current FEN: {fen}

Board (uppercase = White, lowercase = Black):
{board_ascii}

Moves so far: {move_history}
Legal moves for you: {legal_moves}
{past_comments_block}{retry_block}"""

_PAST_COMMENTS_BLOCK = "Your previous comments (DO NOT REPEAT ANY OF THESE): {comments}\n"

_RETRY_BLOCK = """\

## Correction
{prev_error}
"""

# "e7 e5 comment", "e7-e5 comment", "e7e5 comment", optional promotion letter
_MOVE_LINE_RE = re.compile(
    r"([a-h][1-8])\s*[- ]?\s*([a-h][1-8])([qrbnQRBN])?\b[\s:,-]*(.*)"
)
_MAX_COMMENT_CHARS = 150


class LLMOpponent(Opponent):
    """Unfair opponent powered by an LLMProvider."""

    def __init__(
        self,
        name: str,
        provider: LLMProvider,
        logger: ConversationLogger | None = None,
        move_timeout: float = 8.0,
        max_tokens: int = 150,
        temperature: float | None = 0.9,
    ) -> None:
        super().__init__(name)
        self._provider = provider
        self._logger = logger
        self._move_timeout = move_timeout
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def propose(self, state: TurnState) -> Proposal:
        messages = self._build_messages(state)

        if self._logger:
            self._logger.log_request(
                game_id=state.game_id,
                strategy=self.name,
                provider=self._provider.label,
                attempt=state.attempt_num,
                messages=messages,
            )

        try:
            async with asyncio.timeout(self._move_timeout):
                raw = await self._provider.complete(
                    messages,
                    max_tokens=self._max_tokens,
                    temperature=self._temperature,
                )
        except TimeoutError:
            raise ProviderError(
                self._provider.label,
                f"No response within {self._move_timeout}s timeout.",
            )

        if self._logger:
            self._logger.log_response(
                game_id=state.game_id, provider=self._provider.label, raw=raw
            )

        return parse_reply(raw)

    # ------------------------------------------------------------------ #
    # Prompt construction                                                  #
    # ------------------------------------------------------------------ #

    def _build_messages(self, state: TurnState) -> list[Message]:
        system_text = _SYSTEM.format(
            name=state.persona_name,
            color=state.color.capitalize(),
            personality=personality_prompt(state.personality),
        )

        past_comments_block = (
            _PAST_COMMENTS_BLOCK.format(comments=" | ".join(state.recent_comments))
            if state.recent_comments
            else ""
        )
        retry_block = ""
        if state.attempt_num > 1 and state.previous_error:
            retry_block = _RETRY_BLOCK.format(prev_error=state.previous_error)

        user_text = _USER.format(
            fen=state.fen,
            board_ascii=state.board_ascii,
            move_history=" ".join(state.move_history) or "(game just started)",
            legal_moves=", ".join(state.legal_moves_san) or "(none)",
            past_comments_block=past_comments_block,
            retry_block=retry_block,
        )

        return [
            Message(role="system", content=system_text),
            Message(role="user", content=user_text),
        ]


# --------------------------------------------------------------------------- #
# Response parsing                                                             #
# --------------------------------------------------------------------------- #

def parse_reply(raw: str) -> Proposal:
    """
    Extract "<from> <to> <comment>" from a model reply.

    Strategy:
      1. Scan lines top to bottom; the first one carrying two squares wins.
      2. Whatever follows the squares on that line is the comment, with
         surrounding quotes stripped and cut to 150 characters.

    Raises NoProposal when no line holds a move.
    """
    for line in raw.splitlines():
        cleaned = line.strip().strip("*`").strip()
        match = _MOVE_LINE_RE.search(cleaned)
        if not match:
            continue
        from_sq, to_sq, promo, comment = match.groups()
        return Proposal(
            from_square=from_sq,
            to_square=to_sq,
            promotion=promo.lower() if promo else None,
            comment=clean_comment(comment),
            raw=raw,
        )
    raise NoProposal(f"No move found in reply: {raw[:80]!r}")


def clean_comment(text: str) -> str:
    comment = text.strip().strip("\"'“”").strip()
    return comment[:_MAX_COMMENT_CHARS] or SILENT_COMMENT
