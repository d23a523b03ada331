"""
RandomOpponent: the last strategy in every chain.

Picks uniformly among the legal moves (king captures excluded), so as long
as the side to move has any legal move the AI turn always completes.
Comments come from the generic pool, skipping lines used recently.
"""

from __future__ import annotations

import random

import chess

from unfairchess.personas import GENERIC_COMMENTS, SILENT_COMMENT
from unfairchess.players.base import NoProposal, Opponent, Proposal, TurnState


class RandomOpponent(Opponent):
    def __init__(self, name: str = "random", rng: random.Random | None = None) -> None:
        super().__init__(name)
        self._rng = rng or random.Random()

    async def propose(self, state: TurnState) -> Proposal:
        if not state.legal_moves_uci:
            raise NoProposal("No legal moves available.")
        move = chess.Move.from_uci(self._rng.choice(state.legal_moves_uci))
        return Proposal(
            from_square=chess.square_name(move.from_square),
            to_square=chess.square_name(move.to_square),
            promotion=chess.piece_symbol(move.promotion) if move.promotion else None,
            comment=pick_pool_comment(state.recent_comments, self._rng),
        )


def pick_pool_comment(recent: list[str], rng: random.Random) -> str:
    fresh = [c for c in GENERIC_COMMENTS if c not in recent]
    return rng.choice(fresh) if fresh else SILENT_COMMENT
