"""
Typed settings read from config.yaml.

The YAML is parsed once into dataclasses; nothing downstream looks at raw
dicts. Every field has a default: Config() is a complete, provider-less setup
in which the AI opponent falls straight through to random legal moves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

# games store at most this many past AI comments
MAX_COMMENT_WINDOW = 10

DEFAULT_TIME_CONTROLS: dict[str, int] = {
    "bullet": 60,
    "blitz": 180,
    "rapid": 600,
}


@dataclass
class ServerConfig:
    database_url: str = "sqlite:///./unfairchess.db"
    log_dir: str = "./logs"
    log_level: str = "INFO"

    @property
    def log_dir_path(self) -> Path:
        return Path(self.log_dir)


@dataclass
class ModelRef:
    provider: str  # key into the providers section
    model: str     # model ID sent to the API


@dataclass
class AIConfig:
    primary: ModelRef | None = None
    fallbacks: list[ModelRef] = field(default_factory=list)
    move_timeout: float = 8.0   # seconds before one strategy attempt is abandoned
    max_tokens: int = 150
    temperature: float = 0.9
    comment_retries: int = 2    # extra asks when a comment repeats a recent one
    comment_window: int = 10    # how many past comments count as "recent"
    log_conversations: bool = False

    def model_chain(self) -> list[ModelRef]:
        """Primary first, then fallbacks, in the order they are tried."""
        head = [self.primary] if self.primary else []
        return head + list(self.fallbacks)


@dataclass
class DuelConfig:
    rps_timeout: int = 60          # seconds both players have to settle RPS
    chat_limit: int = 100          # newest chat messages kept per match
    chat_max_length: int = 500
    default_time_control: str = "blitz"
    time_controls: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_TIME_CONTROLS)
    )


@dataclass
class ProviderConfig:
    api_key: str = ""
    bearer_token: str = ""
    base_url: str | None = None

    @property
    def auth_token(self) -> str:
        # some gateways issue bearer tokens instead of API keys
        return self.bearer_token or self.api_key


@dataclass
class Config:
    server: ServerConfig = field(default_factory=ServerConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    duel: DuelConfig = field(default_factory=DuelConfig)
    providers: dict[str, ProviderConfig] = field(default_factory=dict)


def load_config(path: str | Path = "config.yaml") -> Config:
    """
    Raises:
        FileNotFoundError: the file does not exist.
        ValueError: the YAML has the wrong shape or fails validation.
    """
    source = Path(path)
    if not source.is_file():
        raise FileNotFoundError(
            f"No config at {source.resolve()}; start from config.example.yaml"
        )

    with source.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        server_raw = raw.get("server") or {}
        server_cfg = ServerConfig(
            database_url=str(server_raw.get("database_url", ServerConfig.database_url)),
            log_dir=str(server_raw.get("log_dir", ServerConfig.log_dir)),
            log_level=str(server_raw.get("log_level", ServerConfig.log_level)).upper(),
        )

        ai_raw = raw.get("ai") or {}
        primary_raw = ai_raw.get("primary")
        ai_cfg = AIConfig(
            primary=_parse_model_ref(primary_raw) if primary_raw else None,
            fallbacks=[_parse_model_ref(m) for m in ai_raw.get("fallbacks") or []],
            move_timeout=float(ai_raw.get("move_timeout", 8.0)),
            max_tokens=int(ai_raw.get("max_tokens", 150)),
            temperature=float(ai_raw.get("temperature", 0.9)),
            comment_retries=int(ai_raw.get("comment_retries", 2)),
            comment_window=int(ai_raw.get("comment_window", 10)),
            log_conversations=bool(ai_raw.get("log_conversations", False)),
        )

        duel_raw = raw.get("duel") or {}
        time_controls_raw = duel_raw.get("time_controls") or DEFAULT_TIME_CONTROLS
        duel_cfg = DuelConfig(
            rps_timeout=int(duel_raw.get("rps_timeout", 60)),
            chat_limit=int(duel_raw.get("chat_limit", 100)),
            chat_max_length=int(duel_raw.get("chat_max_length", 500)),
            default_time_control=str(duel_raw.get("default_time_control", "blitz")),
            time_controls={str(k): int(v) for k, v in time_controls_raw.items()},
        )

        providers = {
            str(name): _parse_provider(section or {})
            for name, section in (raw.get("providers") or {}).items()
        }

        config = Config(server=server_cfg, ai=ai_cfg, duel=duel_cfg, providers=providers)
        validate(config)
        return config

    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"Malformed config: {exc}") from exc


def validate(config: Config) -> None:
    if config.ai.move_timeout <= 0:
        raise ValueError("ai.move_timeout must be > 0")
    if not 1 <= config.ai.comment_window <= MAX_COMMENT_WINDOW:
        raise ValueError(f"ai.comment_window must be between 1 and {MAX_COMMENT_WINDOW}")
    if config.ai.comment_retries < 0:
        raise ValueError("ai.comment_retries must be >= 0")
    if config.duel.rps_timeout <= 0:
        raise ValueError("duel.rps_timeout must be > 0")
    if config.duel.chat_limit < 1:
        raise ValueError("duel.chat_limit must be >= 1")
    if not config.duel.time_controls:
        raise ValueError("duel.time_controls must define at least one time control")
    if any(seconds <= 0 for seconds in config.duel.time_controls.values()):
        raise ValueError("duel.time_controls values must be > 0 seconds")
    if config.duel.default_time_control not in config.duel.time_controls:
        raise ValueError(
            f"duel.default_time_control '{config.duel.default_time_control}' "
            f"is not one of {sorted(config.duel.time_controls)}"
        )
    # Model refs pointing at unknown or key-less providers are skipped when the
    # opponent chain is built, not rejected here.


def _parse_model_ref(value: object) -> ModelRef:
    if not isinstance(value, dict):
        raise ValueError(f"model reference must be a mapping, got {value!r}")
    return ModelRef(provider=str(value["provider"]), model=str(value["model"]))


def _parse_provider(section: dict) -> ProviderConfig:
    return ProviderConfig(
        api_key=str(section.get("api_key") or ""),
        bearer_token=str(section.get("bearer_token") or ""),
        base_url=section.get("base_url") or None,
    )
