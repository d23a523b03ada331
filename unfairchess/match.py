"""
Online match transitions: RPS phase, chaos-token moves, draw protocol,
resignation, chat and clocks.

Phases run one way only: rps -> playing. Like unfairchess.game, every
function validates before it mutates, and a raised error leaves the
match untouched.

Time is passed in explicitly (now) so the service owns the clock and tests
can drive deadlines and flag falls without sleeping.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Literal

from unfairchess import duel
from unfairchess.errors import (
    GameAlreadyOver,
    InvalidRequest,
    NotAParticipant,
    OutOfTurn,
    WrongPhase,
)
from unfairchess.game import apply_resolved, describe_outcome, finish, reset_record
from unfairchess.models import ChatMessage, OnlineMatch, PlayerSlot, QueueEntry, RpsRound
from unfairchess.position import Position, opposite
from unfairchess.resolver import ResolvedMove, resolve_move

logger = logging.getLogger(__name__)

DrawAction = Literal["offer", "accept", "decline"]


def new_match(
    room_id: str,
    first: QueueEntry,
    second: QueueEntry,
    *,
    time_seconds: int,
    rps_timeout: int,
    now: datetime,
) -> OnlineMatch:
    """The entry that waited in the queue plays white; the joiner plays black."""
    match = OnlineMatch(
        room_id=room_id,
        time_control=first.time_control,
        players=[
            PlayerSlot(first.player_id, first.display_name, "white", float(time_seconds)),
            PlayerSlot(second.player_id, second.display_name, "black", float(time_seconds)),
        ],
        rps_deadline=now + timedelta(seconds=rps_timeout),
        created_at=now,
        updated_at=now,
    )
    reset_record(match)
    match.updated_at = now
    refresh_status(match)
    return match


def settle(match: OnlineMatch, now: datetime) -> bool:
    """
    Apply time-based endings that are due: an RPS phase past its deadline is
    abandoned, and a side to move with no clock left loses on time.

    Returns True when the match changed and must be saved.
    """
    if match.is_over:
        return False
    if match.phase == "rps":
        if now < match.rps_deadline:
            return False
        finish(match, "abandoned", None)
        logger.info("Match %s abandoned: RPS deadline passed", match.room_id)
    else:
        slot = match.slot_by_color(match.side_to_move)
        if slot.time_remaining - _elapsed(match, now) > 0:
            return False
        slot.time_remaining = 0.0
        finish(match, "timeout", opposite(slot.color))
        logger.info("Match %s: %s flagged", match.room_id, slot.color)
    match.draw_offered_by = None
    refresh_status(match)
    return True


def seat(match: OnlineMatch, player_id: str) -> PlayerSlot:
    slot = match.slot_for(player_id)
    if slot is None:
        raise NotAParticipant("You are not playing in this match.")
    return slot


def submit_rps(match: OnlineMatch, player_id: str, choice: str, now: datetime) -> RpsRound | None:
    slot = seat(match, player_id)
    if match.is_over:
        raise GameAlreadyOver("Match is over.")
    round_ = duel.submit_choice(match.chaos, slot.color, choice)
    if match.phase == "playing":
        match.turn_started_at = now
    match.updated_at = now
    refresh_status(match)
    return round_


def move(
    match: OnlineMatch,
    player_id: str,
    from_square: str,
    to_square: str,
    promotion: str | None,
    use_chaos_token: bool,
    now: datetime,
) -> ResolvedMove:
    slot = seat(match, player_id)
    if match.is_over:
        raise GameAlreadyOver("Match is over.")
    if match.phase == "rps":
        raise WrongPhase("Settle rock-paper-scissors before the first move.")
    if slot.color != match.side_to_move:
        raise OutOfTurn("Not your turn.")

    allow_illegal = duel.token_allows(match.chaos, slot.color, use_chaos_token)
    resolved = resolve_move(
        Position.from_fen(match.fen),
        from_square,
        to_square,
        promotion,
        allow_illegal=allow_illegal,
    )

    slot.time_remaining = max(0.0, slot.time_remaining - _elapsed(match, now))
    if resolved.was_forced:
        duel.consume_token(match.chaos)
        logger.info("Match %s: %s spent the chaos token on %s",
                    match.room_id, slot.color, resolved.notation)
    if match.draw_offered_by and match.draw_offered_by != player_id:
        match.draw_offered_by = None  # moving on declines the opponent's offer
    apply_resolved(match, resolved)
    match.turn_started_at = now
    match.updated_at = now
    refresh_status(match)
    return resolved


def resign(match: OnlineMatch, player_id: str, now: datetime) -> None:
    slot = seat(match, player_id)
    if match.is_over:
        raise GameAlreadyOver("Match is over.")
    match.draw_offered_by = None
    finish(match, "resigned", opposite(slot.color))
    match.updated_at = now
    refresh_status(match)


def draw(match: OnlineMatch, player_id: str, action: DrawAction, now: datetime) -> None:
    """
    Draw protocol: either side offers; only the other side may accept
    (the game ends drawn by agreement) or decline (the offer is cleared).
    """
    seat(match, player_id)
    if match.is_over:
        raise GameAlreadyOver("Match is over.")
    if match.phase == "rps":
        raise WrongPhase("No draws before the first move.")

    offered_by = match.draw_offered_by
    match action:
        case "offer":
            if offered_by and offered_by != player_id:
                raise InvalidRequest("Your opponent already offered a draw: accept or decline it.")
            match.draw_offered_by = player_id
        case "accept" | "decline":
            if offered_by is None:
                raise InvalidRequest(f"There is no draw offer to {action}.")
            if offered_by == player_id:
                raise InvalidRequest(f"You cannot {action} your own draw offer.")
            match.draw_offered_by = None
            if action == "accept":
                finish(match, "draw", None, "agreement")
        case _:
            raise InvalidRequest(f"Unknown draw action '{action}'.")
    match.updated_at = now
    refresh_status(match)


def chat(
    match: OnlineMatch,
    player_id: str,
    text: str,
    now: datetime,
    *,
    limit: int,
    max_length: int,
) -> ChatMessage:
    """Append to the chat log, keeping only the newest `limit` messages."""
    seat(match, player_id)
    text = text.strip()
    if not text:
        raise InvalidRequest("Message is empty.")
    if len(text) > max_length:
        raise InvalidRequest(f"Message is longer than {max_length} characters.")
    message = ChatMessage(sender_id=player_id, text=text, sent_at=now)
    match.chat_log = (match.chat_log + [message])[-limit:]
    match.updated_at = now
    return message


# --------------------------------------------------------------------------- #
# Status text                                                                 #
# --------------------------------------------------------------------------- #

def refresh_status(match: OnlineMatch) -> None:
    match.status_text = status_text(match)


def status_text(match: OnlineMatch) -> str:
    name_of = _namer(match)
    if match.is_over:
        return describe_outcome(match, name_of)
    if match.phase == "rps":
        waiting = [name_of(c) for c in ("white", "black") if c not in match.chaos.choices]
        return f"Rock-paper-scissors for the chaos token: waiting for {' and '.join(waiting)}."
    text = f"{'Check! ' if match.is_check else ''}{name_of(match.side_to_move)} to move."
    if match.draw_offered_by:
        text += f" {match.slot_for(match.draw_offered_by).display_name} offers a draw."
    return text


def _namer(match: OnlineMatch):
    return lambda color: match.slot_by_color(color).display_name


def _elapsed(match: OnlineMatch, now: datetime) -> float:
    if match.turn_started_at is None:
        return 0.0
    return max(0.0, (now - match.turn_started_at).total_seconds())
