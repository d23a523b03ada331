"""
OpponentChain: fixed-priority fallback over AI move sources.

Order: primary model, then each fallback model, then a uniformly random
legal move. Every proposal is run through the unfair move resolver with
illegality allowed; a provider error, a timeout, an unparseable reply or a
resolver rejection each move the chain on to the next strategy. The result
is tagged with the strategy that produced it so callers and tests can see
exactly which branch fired.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from unfairchess.errors import AiProviderFailure, IllegalMove
from unfairchess.models import Color
from unfairchess.personas import KING_SPARED_COMMENT
from unfairchess.players.base import NoProposal, Opponent, TurnState
from unfairchess.players.random_mover import RandomOpponent, pick_pool_comment
from unfairchess.position import Position
from unfairchess.providers.base import ProviderError
from unfairchess.resolver import ResolvedMove, resolve_move

logger = logging.getLogger(__name__)

RANDOM_STRATEGY = "random"


@dataclass(frozen=True)
class AiTurn:
    strategy: str   # "primary" | "fallback:1" | "fallback:2" | ... | "random"
    source: str     # opponent name, e.g. "openrouter/openai/gpt-4o-mini"
    move: ResolvedMove
    comment: str


class OpponentChain:
    def __init__(
        self,
        opponents: list[Opponent],
        *,
        comment_retries: int = 2,
        comment_window: int = 10,
        rng: random.Random | None = None,
    ) -> None:
        self._rng = rng or random.Random()
        self._strategies: list[tuple[str, Opponent]] = [
            ("primary" if i == 0 else f"fallback:{i}", opponent)
            for i, opponent in enumerate(opponents)
        ]
        self._strategies.append((RANDOM_STRATEGY, RandomOpponent(rng=self._rng)))
        self._comment_retries = comment_retries
        self._comment_window = comment_window

    @property
    def strategies(self) -> list[tuple[str, str]]:
        """(strategy tag, opponent name) in the order they are tried."""
        return [(tag, opponent.name) for tag, opponent in self._strategies]

    async def play(
        self,
        position: Position,
        *,
        game_id: str,
        persona_name: str,
        personality: str | None,
        move_history: list[str],
        recent_comments: list[str],
    ) -> AiTurn:
        """
        Produce the AI's move for position.

        Raises:
            AiProviderFailure: every strategy failed, which only happens when
                the side to move has no legal move left.
        """
        recent = recent_comments[-self._comment_window:]
        color: Color = position.side_to_move
        base_state = dict(
            game_id=game_id,
            fen=position.fen,
            board_ascii=position.render_ascii(),
            color=color,
            legal_moves_uci=position.legal_moves_uci(),
            legal_moves_san=position.legal_moves_san(),
            move_history=list(move_history),
            persona_name=persona_name,
            personality=personality,
            recent_comments=recent,
        )
        king_targeted = False

        for tag, opponent in self._strategies:
            previous_error: str | None = None
            for attempt in range(1, self._comment_retries + 2):
                state = TurnState(
                    **base_state, attempt_num=attempt, previous_error=previous_error
                )
                logger.info("AI strategy %s (%s) attempt %d [game=%s]",
                            tag, opponent.name, attempt, game_id)
                try:
                    proposal = await opponent.propose(state)
                except (ProviderError, NoProposal) as exc:
                    logger.warning("AI strategy %s failed [game=%s]: %s", tag, game_id, exc)
                    break

                try:
                    resolved = resolve_move(
                        position,
                        proposal.from_square,
                        proposal.to_square,
                        proposal.promotion,
                        allow_illegal=True,
                    )
                except IllegalMove as exc:
                    king_targeted = king_targeted or position.is_king_at(proposal.to_square)
                    logger.warning(
                        "AI strategy %s proposed %s-%s, rejected [game=%s]: %s",
                        tag, proposal.from_square, proposal.to_square, game_id, exc.message,
                    )
                    break

                comment = proposal.comment
                if tag == RANDOM_STRATEGY and king_targeted and KING_SPARED_COMMENT not in recent:
                    comment = KING_SPARED_COMMENT
                if comment in recent:
                    if attempt <= self._comment_retries:
                        logger.debug("AI strategy %s repeated comment %r, asking again", tag, comment)
                        previous_error = (
                            f'Your comment "{comment}" repeats one of your previous '
                            "comments. Say something new."
                        )
                        continue
                    comment = pick_pool_comment(recent, self._rng)

                logger.info("AI move %s via %s (%s) [game=%s]",
                            resolved.notation, tag, opponent.name, game_id)
                return AiTurn(strategy=tag, source=opponent.name, move=resolved, comment=comment)

        logger.error("AI chain exhausted with no move [game=%s fen=%s]", game_id, position.fen)
        raise AiProviderFailure("The AI could not find any move to play.")
