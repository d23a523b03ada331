"""
Game state machine: transitions on Game records.

States (Game.status):
  awaiting_human_move --human move--> awaiting_ai_move | game_over
  awaiting_ai_move    --AI turn-----> awaiting_human_move | game_over
  any                 --resign------> game_over
  game_over           --reset-------> awaiting_human_move (or awaiting_ai_move
                                      when the human plays black)

Functions here are synchronous and storage-agnostic: they validate first,
then mutate the record in place. A function that raises has not touched
the record. The apply/terminal helpers are shared with online matches.
"""

from __future__ import annotations

from unfairchess import duel
from unfairchess.config import MAX_COMMENT_WINDOW
from unfairchess.errors import GameAlreadyOver, InvalidRequest, OutOfTurn, WrongPhase
from unfairchess.models import (
    STARTING_FEN,
    ChaosState,
    ChessRecord,
    Color,
    DrawReason,
    Game,
    GameMode,
    OpponentProfile,
    Outcome,
    RpsRound,
    utc_now,
)
from unfairchess.players.chain import AiTurn
from unfairchess.position import Position, opposite
from unfairchess.resolver import ResolvedMove, resolve_move

RECENT_COMMENT_LIMIT = MAX_COMMENT_WINDOW

_DRAW_REASON_TEXT: dict[str, str] = {
    "insufficient_material": "insufficient material",
    "threefold_repetition": "threefold repetition",
    "fifty_move": "the fifty-move rule",
    "agreement": "agreement",
}


# --------------------------------------------------------------------------- #
# Shared record helpers (games and matches)                                   #
# --------------------------------------------------------------------------- #

def detect_terminal(
    position: Position,
    position_keys: list[str],
) -> tuple[Outcome, Color | None, DrawReason | None] | None:
    """
    Terminal check, evaluated in this order: checkmate, stalemate, then the
    draw conditions (insufficient material, threefold repetition, fifty-move).

    Checkmate is won by the side that just moved, i.e. the side NOT to move.
    """
    if position.is_checkmate():
        return "checkmate", opposite(position.side_to_move), None
    if position.is_stalemate():
        return "stalemate", None, None
    if position.is_insufficient_material():
        return "draw", None, "insufficient_material"
    if position_keys.count(position.repetition_key) >= 3:
        return "draw", None, "threefold_repetition"
    if position.halfmove_clock >= 100:
        return "draw", None, "fifty_move"
    return None


def finish(
    record: ChessRecord,
    outcome: Outcome,
    winner: Color | None,
    draw_reason: DrawReason | None = None,
) -> None:
    record.is_over = True
    record.outcome = outcome
    record.winner = winner
    record.draw_reason = draw_reason
    record.updated_at = utc_now()


def apply_resolved(record: ChessRecord, resolved: ResolvedMove) -> None:
    """Append a resolved move to the record and settle any terminal state."""
    position = resolved.position
    record.fen = position.fen
    record.move_history.append(resolved.uci)
    record.notation_history.append(resolved.notation)
    record.position_keys.append(position.repetition_key)
    record.ply_count += 1
    record.is_check = position.is_check
    record.updated_at = utc_now()

    terminal = detect_terminal(position, record.position_keys)
    if terminal is not None:
        finish(record, *terminal)


def reset_record(record: ChessRecord) -> None:
    start = Position.starting()
    record.fen = start.fen
    record.is_over = False
    record.outcome = None
    record.winner = None
    record.draw_reason = None
    record.move_history = []
    record.notation_history = []
    record.position_keys = [start.repetition_key]
    record.ply_count = 0
    record.is_check = False
    record.updated_at = utc_now()


def describe_outcome(record: ChessRecord, name_of) -> str:
    """Status line for a finished record; name_of maps a color to a display name."""
    winner = name_of(record.winner) if record.winner else None
    match record.outcome:
        case "checkmate":
            return f"Checkmate! {winner} wins."
        case "stalemate":
            return "Stalemate. The game is drawn."
        case "draw":
            reason = _DRAW_REASON_TEXT.get(record.draw_reason or "", "agreement")
            return f"Draw by {reason}."
        case "resigned":
            return f"{name_of(opposite(record.winner))} resigned. {winner} wins."
        case "timeout":
            return f"{name_of(opposite(record.winner))} ran out of time. {winner} wins."
        case "abandoned":
            return "Match abandoned: rock-paper-scissors was not settled in time."
        case _:
            return "Game over."


# --------------------------------------------------------------------------- #
# Game transitions                                                             #
# --------------------------------------------------------------------------- #

def new_game(
    game_id: str,
    mode: GameMode,
    opponent: OpponentProfile,
    human_color: Color = "white",
) -> Game:
    game = Game(
        id=game_id,
        mode=mode,
        opponent=opponent,
        human_color=human_color,
        chaos=ChaosState() if mode == "local" else None,
        fen=STARTING_FEN,
        position_keys=[Position.starting().repetition_key],
    )
    refresh_status(game)
    return game


def human_move(
    game: Game,
    from_square: str,
    to_square: str,
    promotion: str | None = None,
    use_chaos_token: bool = False,
) -> ResolvedMove:
    """
    Apply a human move under strict legality, or as a forced relocation when
    a local-duel player spends an unused chaos token on an illegal move.
    """
    if game.is_over:
        raise GameAlreadyOver("Game is over.")
    side = game.side_to_move
    if game.mode == "bot" and side != game.human_color:
        raise OutOfTurn("Not your turn.")
    if game.chaos is not None and game.chaos.phase == "rps":
        raise WrongPhase("Settle rock-paper-scissors before the first move.")

    allow_illegal = duel.token_allows(game.chaos, side, use_chaos_token)
    resolved = resolve_move(
        Position.from_fen(game.fen),
        from_square,
        to_square,
        promotion,
        allow_illegal=allow_illegal,
    )
    if resolved.was_forced:
        duel.consume_token(game.chaos)
    apply_resolved(game, resolved)
    refresh_status(game)
    return resolved


def apply_ai_turn(game: Game, turn: AiTurn) -> None:
    if game.status != "awaiting_ai_move":
        raise OutOfTurn("It is not the AI's turn.")
    apply_resolved(game, turn.move)
    game.last_comment = turn.comment
    game.recent_comments = (game.recent_comments + [turn.comment])[-RECENT_COMMENT_LIMIT:]
    game.last_ai_strategy = turn.strategy
    game.ai_error = None
    refresh_status(game)


def record_ai_failure(game: Game, message: str) -> None:
    """Leave the position alone; flag the failure so a retry can pick it up."""
    game.ai_error = message
    game.updated_at = utc_now()
    refresh_status(game)


def resign(game: Game) -> Color:
    """The human resigns (bot games) or the side to move resigns (local duels)."""
    if game.is_over:
        raise GameAlreadyOver("Game is over.")
    loser = game.human_color if game.mode == "bot" else game.side_to_move
    finish(game, "resigned", opposite(loser))
    refresh_status(game)
    return loser


def reset(game: Game) -> None:
    """Back to the starting position; identity and opponent binding are kept."""
    reset_record(game)
    game.last_comment = None
    game.recent_comments = []
    game.ai_error = None
    game.last_ai_strategy = None
    if game.mode == "local":
        game.chaos = ChaosState()
    refresh_status(game)


def submit_rps(game: Game, side: Color, choice: str) -> RpsRound | None:
    if game.mode != "local" or game.chaos is None:
        raise InvalidRequest("Rock-paper-scissors only exists in local duels.")
    if game.is_over:
        raise GameAlreadyOver("Game is over.")
    round_ = duel.submit_choice(game.chaos, side, choice)
    game.updated_at = utc_now()
    refresh_status(game)
    return round_


# --------------------------------------------------------------------------- #
# Status text                                                                 #
# --------------------------------------------------------------------------- #

def refresh_status(game: Game) -> None:
    game.status_text = status_text(game)


def status_text(game: Game) -> str:
    name_of = _namer(game)
    if game.is_over:
        return describe_outcome(game, name_of)
    if game.ai_error:
        return f"{game.opponent.display_name('black')} failed to move ({game.ai_error}). Retry the AI move."
    if game.chaos is not None and game.chaos.phase == "rps":
        waiting = [name_of(c) for c in ("white", "black") if c not in game.chaos.choices]
        return f"Rock-paper-scissors for the chaos token: waiting for {' and '.join(waiting)}."

    check = "Check! " if game.is_check else ""
    if game.status == "awaiting_ai_move":
        return f"{check}{game.opponent.display_name('black')} is thinking..."
    if game.mode == "bot":
        return f"{check}Your move."
    return f"{check}{name_of(game.side_to_move)} to move."


def _namer(game: Game):
    if game.mode == "bot":
        bot = game.opponent.display_name("black")
        return lambda color: "You" if color == game.human_color else bot
    return game.opponent.display_name
