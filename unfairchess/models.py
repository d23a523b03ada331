"""
Typed record dataclasses: the shared language between the state machines,
the store and the web layer.

Records are plain mutable dataclasses: the service loads one from the store,
a state-machine function mutates it, and the service writes it back. to_dict()
gives the JSON-safe form used by the store, snapshot() the form served to
clients (computed fields added, pending RPS choices hidden).
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

import chess

Color = Literal["white", "black"]
GameMode = Literal["bot", "local"]
Phase = Literal["rps", "playing"]
RpsResult = Literal["white", "black", "tie"]
GameStatus = Literal["awaiting_human_move", "awaiting_ai_move", "game_over"]
Outcome = Literal[
    "checkmate",
    "stalemate",
    "draw",
    "resigned",
    "timeout",
    "abandoned",
]
DrawReason = Literal[
    "insufficient_material",
    "threefold_repetition",
    "fifty_move",
    "agreement",
]

RPS_CHOICES: tuple[str, ...] = ("rock", "paper", "scissors")
STARTING_FEN = chess.STARTING_FEN


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: str | datetime | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _jsonable(value: Any) -> Any:
    """dataclasses.asdict output with datetimes turned into ISO strings."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


# --------------------------------------------------------------------------- #
# Building blocks                                                              #
# --------------------------------------------------------------------------- #

@dataclass
class OpponentProfile:
    """Who sits across the board: a bot persona, or the two local humans."""

    kind: Literal["bot", "humans"]
    bot_id: str | None = None
    name: str | None = None
    personality: str | None = None
    white_name: str | None = None
    black_name: str | None = None

    def display_name(self, color: Color) -> str:
        if self.kind == "bot":
            return self.name or "AI"
        name = self.white_name if color == "white" else self.black_name
        return name or color.capitalize()


@dataclass
class RpsRound:
    white: str
    black: str
    result: RpsResult


@dataclass
class ChaosState:
    """RPS sub-phase and the single-use illegal-move token it awards."""

    phase: Phase = "rps"
    choices: dict[str, str] = field(default_factory=dict)  # color -> pending choice
    holder: Color | None = None
    used: bool = False
    last_round: RpsRound | None = None

    @property
    def available(self) -> bool:
        return self.holder is not None and not self.used

    def public(self) -> dict:
        """Client view: whether each side has chosen, never what it chose."""
        return {
            "phase": self.phase,
            "rps_submitted": {
                "white": "white" in self.choices,
                "black": "black" in self.choices,
            },
            "last_round": dataclasses.asdict(self.last_round) if self.last_round else None,
            "chaos_token_holder": self.holder,
            "chaos_token_used": self.used,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ChaosState:
        last = data.get("last_round")
        return cls(
            phase=data.get("phase", "rps"),
            choices=dict(data.get("choices") or {}),
            holder=data.get("holder"),
            used=bool(data.get("used", False)),
            last_round=RpsRound(**last) if last else None,
        )


@dataclass
class PlayerSlot:
    player_id: str
    display_name: str
    color: Color
    time_remaining: float  # seconds


@dataclass
class ChatMessage:
    sender_id: str
    text: str
    sent_at: datetime = field(default_factory=utc_now)


@dataclass
class QueueEntry:
    player_id: str
    display_name: str
    time_control: str
    joined_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return _jsonable(dataclasses.asdict(self))

    @classmethod
    def from_dict(cls, data: dict) -> QueueEntry:
        return cls(
            player_id=data["player_id"],
            display_name=data["display_name"],
            time_control=data["time_control"],
            joined_at=_parse_dt(data["joined_at"]),
        )


# --------------------------------------------------------------------------- #
# Records                                                                      #
# --------------------------------------------------------------------------- #

@dataclass(kw_only=True)
class ChessRecord:
    """Position, history and outcome fields shared by games and online matches."""

    fen: str = STARTING_FEN
    is_over: bool = False
    outcome: Outcome | None = None
    winner: Color | None = None
    draw_reason: DrawReason | None = None
    move_history: list[str] = field(default_factory=list)      # UCI coordinate pairs
    notation_history: list[str] = field(default_factory=list)  # SAN, or "e2-e5*" when forced
    position_keys: list[str] = field(default_factory=list)     # every position reached, for repetition
    ply_count: int = 0
    is_check: bool = False
    status_text: str = ""
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def side_to_move(self) -> Color:
        return "white" if self.fen.split()[1] == "w" else "black"

    def to_dict(self) -> dict:
        return _jsonable(dataclasses.asdict(self))

    @staticmethod
    def _record_fields(data: dict) -> dict:
        return dict(
            fen=data["fen"],
            is_over=bool(data["is_over"]),
            outcome=data.get("outcome"),
            winner=data.get("winner"),
            draw_reason=data.get("draw_reason"),
            move_history=list(data.get("move_history") or []),
            notation_history=list(data.get("notation_history") or []),
            position_keys=list(data.get("position_keys") or []),
            ply_count=int(data.get("ply_count", 0)),
            is_check=bool(data.get("is_check", False)),
            status_text=data.get("status_text", ""),
            created_at=_parse_dt(data.get("created_at")) or utc_now(),
            updated_at=_parse_dt(data.get("updated_at")) or utc_now(),
        )


@dataclass(kw_only=True)
class Game(ChessRecord):
    """A bot game or a local two-player duel."""

    id: str
    mode: GameMode
    opponent: OpponentProfile
    human_color: Color = "white"  # bot games only
    last_comment: str | None = None
    recent_comments: list[str] = field(default_factory=list)
    chaos: ChaosState | None = None  # local duels only
    ai_error: str | None = None
    last_ai_strategy: str | None = None

    @property
    def status(self) -> GameStatus:
        if self.is_over:
            return "game_over"
        if self.mode == "bot" and self.side_to_move != self.human_color:
            return "awaiting_ai_move"
        return "awaiting_human_move"

    @classmethod
    def from_dict(cls, data: dict) -> Game:
        chaos = data.get("chaos")
        return cls(
            id=data["id"],
            mode=data["mode"],
            opponent=OpponentProfile(**data["opponent"]),
            human_color=data.get("human_color", "white"),
            last_comment=data.get("last_comment"),
            recent_comments=list(data.get("recent_comments") or []),
            chaos=ChaosState.from_dict(chaos) if chaos else None,
            ai_error=data.get("ai_error"),
            last_ai_strategy=data.get("last_ai_strategy"),
            **cls._record_fields(data),
        )

    def snapshot(self) -> dict:
        data = self.to_dict()
        data["side_to_move"] = self.side_to_move
        data["status"] = self.status
        data.pop("position_keys")
        data["chaos"] = self.chaos.public() if self.chaos else None
        return data


@dataclass(kw_only=True)
class OnlineMatch(ChessRecord):
    """A networked two-human duel; players[0] plays white, players[1] black."""

    room_id: str
    time_control: str
    players: list[PlayerSlot]
    rps_deadline: datetime
    chaos: ChaosState = field(default_factory=ChaosState)
    draw_offered_by: str | None = None
    chat_log: list[ChatMessage] = field(default_factory=list)
    turn_started_at: datetime | None = None

    @property
    def phase(self) -> Phase:
        return self.chaos.phase

    def slot_for(self, player_id: str) -> PlayerSlot | None:
        return next((p for p in self.players if p.player_id == player_id), None)

    def slot_by_color(self, color: Color) -> PlayerSlot:
        return next(p for p in self.players if p.color == color)

    @classmethod
    def from_dict(cls, data: dict) -> OnlineMatch:
        return cls(
            room_id=data["room_id"],
            time_control=data["time_control"],
            players=[PlayerSlot(**p) for p in data["players"]],
            rps_deadline=_parse_dt(data["rps_deadline"]),
            chaos=ChaosState.from_dict(data.get("chaos") or {}),
            draw_offered_by=data.get("draw_offered_by"),
            chat_log=[
                ChatMessage(
                    sender_id=m["sender_id"],
                    text=m["text"],
                    sent_at=_parse_dt(m["sent_at"]),
                )
                for m in data.get("chat_log") or []
            ],
            turn_started_at=_parse_dt(data.get("turn_started_at")),
            **cls._record_fields(data),
        )

    def snapshot(self) -> dict:
        data = self.to_dict()
        data["side_to_move"] = self.side_to_move
        data["phase"] = self.phase
        data.pop("position_keys")
        data.update(self.chaos.public())
        holder = self.chaos.holder
        data["chaos_token_holder_id"] = (
            self.slot_by_color(holder).player_id if holder else None
        )
        data.pop("chaos")
        return data
