"""Request bodies. Fields are snake_case; camelCase aliases are accepted too."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from unfairchess.models import RPS_CHOICES

_SQUARE_CHARS = ("abcdefgh", "12345678")


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateGameRequest(_Body):
    mode: Literal["bot", "local"] = "bot"
    bot_id: Optional[str] = None
    human_color: Literal["white", "black", "random"] = "white"
    white_name: Optional[str] = Field(default=None, max_length=40)
    black_name: Optional[str] = Field(default=None, max_length=40)


class MoveRequest(_Body):
    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    promotion: Optional[Literal["q", "r", "b", "n"]] = None
    use_chaos_token: bool = False

    @field_validator("from_square", "to_square")
    @classmethod
    def validate_square(cls, value: str) -> str:
        value = value.strip().lower()
        if len(value) != 2 or value[0] not in _SQUARE_CHARS[0] or value[1] not in _SQUARE_CHARS[1]:
            raise ValueError(f"{value!r} is not a square name like 'e4'.")
        return value

    @field_validator("promotion", mode="before")
    @classmethod
    def normalize_promotion(cls, value: object) -> object:
        return value.strip().lower()[:1] if isinstance(value, str) and value.strip() else None


class RpsChoiceMixin(_Body):
    choice: str

    @field_validator("choice")
    @classmethod
    def validate_choice(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in RPS_CHOICES:
            raise ValueError("choice must be rock, paper or scissors.")
        return value


class LocalRpsRequest(RpsChoiceMixin):
    side: Literal["white", "black"]


class PlayerRequest(_Body):
    player_id: str = Field(min_length=1, max_length=128)


class JoinRequest(PlayerRequest):
    display_name: str = Field(default="", max_length=40)
    time_control: Optional[str] = None


class MatchRpsRequest(PlayerRequest, RpsChoiceMixin):
    pass


class MatchMoveRequest(PlayerRequest, MoveRequest):
    pass


class DrawRequest(PlayerRequest):
    action: Literal["offer", "accept", "decline"]


class ChatRequest(PlayerRequest):
    message: str
