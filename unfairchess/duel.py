"""
Chaos duel primitives: the rock-paper-scissors sub-phase and the single-use
chaos token it awards.

Shared by local duel games (unfairchess.game) and online matches
(unfairchess.match). Player 1 of an RPS round is always white.
"""

from __future__ import annotations

import logging
from typing import Literal

from unfairchess.errors import InvalidRequest, WrongPhase
from unfairchess.models import RPS_CHOICES, ChaosState, Color, RpsRound

logger = logging.getLogger(__name__)

RpsWinner = Literal["player1", "player2", "tie"]

_BEATS = {
    "rock": "scissors",
    "paper": "rock",
    "scissors": "paper",
}


def resolve_rps(first: str, second: str) -> RpsWinner:
    """Standard rules: rock beats scissors, paper beats rock, scissors beats paper."""
    if first == second:
        return "tie"
    return "player1" if _BEATS[first] == second else "player2"


def submit_choice(chaos: ChaosState, side: Color, choice: str) -> RpsRound | None:
    """
    Record one side's RPS choice; resolve the round once both are in.

    A tie clears both choices and keeps the phase at "rps". A win moves the
    phase to "playing" and hands the token to the winner.

    Returns the resolved round, or None while still waiting for the other side.
    """
    if chaos.phase != "rps":
        raise WrongPhase("Rock-paper-scissors is already decided.")
    choice = choice.strip().lower()
    if choice not in RPS_CHOICES:
        raise InvalidRequest(f"'{choice}' is not rock, paper or scissors.")
    if side in chaos.choices:
        raise WrongPhase(f"{side.capitalize()} has already chosen.")

    chaos.choices[side] = choice
    if len(chaos.choices) < 2:
        return None

    white, black = chaos.choices["white"], chaos.choices["black"]
    winner = resolve_rps(white, black)
    chaos.choices = {}
    if winner == "tie":
        chaos.last_round = RpsRound(white=white, black=black, result="tie")
        logger.info("RPS tie (%s), choosing again", white)
        return chaos.last_round

    holder: Color = "white" if winner == "player1" else "black"
    chaos.last_round = RpsRound(white=white, black=black, result=holder)
    chaos.holder = holder
    chaos.phase = "playing"
    logger.info("RPS won by %s (%s vs %s), chaos token awarded", holder, white, black)
    return chaos.last_round


def token_allows(chaos: ChaosState | None, side: Color, requested: bool) -> bool:
    """True when side asked for its chaos move and still holds an unused token."""
    return bool(
        requested
        and chaos is not None
        and chaos.holder == side
        and not chaos.used
    )


def consume_token(chaos: ChaosState) -> None:
    chaos.used = True
