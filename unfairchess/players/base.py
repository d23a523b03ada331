"""
Abstract Opponent interface and the TurnState snapshot passed to each opponent per turn.

TurnState contains everything an opponent needs to pick a move, whether that's
an LLM API call or a uniform random choice. Opponents only *propose*: the
chain runs every proposal through the unfair move resolver, so an opponent
may return anything, including moves that are illegal or rejected outright.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from unfairchess.models import Color


@dataclass
class Proposal:
    """Returned by Opponent.propose(): a candidate move plus its flavour text."""
    from_square: str
    to_square: str
    comment: str
    raw: str = ""                  # unmodified model output (empty for random moves)
    promotion: str | None = None


@dataclass
class TurnState:
    """Immutable snapshot of the game at the start of the AI's turn."""

    game_id: str
    fen: str
    board_ascii: str
    color: Color
    legal_moves_uci: list[str]
    legal_moves_san: list[str]
    move_history: list[str]
    persona_name: str
    personality: str | None
    recent_comments: list[str] = field(default_factory=list)

    # Populated on retry attempts (attempt_num > 1)
    attempt_num: int = 1
    previous_error: str | None = None


class NoProposal(Exception):
    """The opponent answered, but nothing usable could be extracted."""


class Opponent(ABC):
    """Abstract base class for every AI move source."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def propose(self, state: TurnState) -> Proposal:
        """
        Given the current turn state, return a Proposal.

        Raises:
            ProviderError: the backing API failed or timed out.
            NoProposal: the reply could not be turned into a move.
        """
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
