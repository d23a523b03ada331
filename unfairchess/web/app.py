"""
FastAPI application: the HTTP surface of the game server.

Exposes:
  GET  /api/bots                          Bot roster
  GET  /api/config                        Time controls, RPS timeout, chat limits, AI chain
  POST /api/games                         New bot game or local duel
  GET  /api/games/{id}                    Game snapshot
  POST /api/games/{id}/move               Human move (AI replies in the same request)
  POST /api/games/{id}/ai-move            Retry a failed AI turn
  POST /api/games/{id}/resign | reset
  POST /api/games/{id}/rps                Local duel rock-paper-scissors
  POST /api/matchmaking/join | leave
  GET  /api/matchmaking/status/{player_id}
  GET  /api/matches/{room_id}
  POST /api/matches/{room_id}/rps | move | resign | draw | chat

Clients poll; every response is a complete snapshot of the record.
Run with: uvicorn --factory unfairchess.web.app:create_app (one worker).
"""

from __future__ import annotations

import logging
import logging.handlers
import random
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from unfairchess.config import Config, load_config
from unfairchess.errors import UnfairChessError
from unfairchess.locks import KeyedLocks
from unfairchess.matchmaking import Matchmaker, QueueResult
from unfairchess.models import utc_now
from unfairchess.personas import BOTS
from unfairchess.players import OpponentChain, create_opponent_chain
from unfairchess.service import Clock, GameService, MatchService
from unfairchess.store import SQLStore, create_store
from unfairchess.web.schemas import (
    ChatRequest,
    CreateGameRequest,
    DrawRequest,
    JoinRequest,
    LocalRpsRequest,
    MatchMoveRequest,
    MatchRpsRequest,
    MoveRequest,
    PlayerRequest,
)

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"


# --------------------------------------------------------------------------- #
# Logging                                                                      #
# --------------------------------------------------------------------------- #

def configure_logging(log_dir: Path, level: str = "INFO") -> None:
    log_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=_LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),                                   # server console
            logging.handlers.RotatingFileHandler(
                log_dir / "unfairchess.log",
                maxBytes=2 * 1024 * 1024, backupCount=3,               # 2 MB × 3 files
                encoding="utf-8",
            ),
        ],
    )


def _config_from_disk(path: str = "config.yaml") -> Config:
    if Path(path).exists():
        return load_config(path)
    logger.warning("%s not found, running with defaults (random-move AI only)", path)
    return Config()


# --------------------------------------------------------------------------- #
# Application factory                                                          #
# --------------------------------------------------------------------------- #

def create_app(
    config: Config | None = None,
    *,
    store: SQLStore | None = None,
    chain: OpponentChain | None = None,
    clock: Clock = utc_now,
    rng: random.Random | None = None,
) -> FastAPI:
    """
    Build the app. With no config, config.yaml is read (if present) and
    logging is set up; tests pass their own config, store, chain and clock.
    """
    if config is None:
        config = _config_from_disk()
        configure_logging(config.server.log_dir_path, config.server.log_level)

    store = store or create_store(config.server.database_url)
    chain = chain or create_opponent_chain(config, rng=rng)
    locks = KeyedLocks()
    game_service = GameService(store, chain, locks, rng=rng)
    match_service = MatchService(store, locks, config.duel, clock=clock)
    matchmaker = Matchmaker(store, locks, match_service, config.duel, clock=clock)
    logger.info("AI chain: %s", ", ".join(f"{tag}={name}" for tag, name in chain.strategies))

    app = FastAPI(title="Unfair Chess")

    @app.exception_handler(UnfairChessError)
    async def unfair_chess_error(request: Request, exc: UnfairChessError) -> JSONResponse:
        logger.debug("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request.")
        return JSONResponse(
            status_code=400,
            content={"message": f"{where}: {message}" if where else message},
        )

    # ------------------------------------------------------------------ #
    # Catalog                                                             #
    # ------------------------------------------------------------------ #

    @app.get("/api/bots")
    def get_bots():
        return [
            {"id": b.id, "name": b.name, "personality": b.personality, "description": b.description}
            for b in BOTS
        ]

    @app.get("/api/config")
    def get_config():
        return {
            "time_controls": config.duel.time_controls,
            "default_time_control": config.duel.default_time_control,
            "rps_timeout": config.duel.rps_timeout,
            "chat_limit": config.duel.chat_limit,
            "chat_max_length": config.duel.chat_max_length,
            "ai_chain": [{"strategy": tag, "name": name} for tag, name in chain.strategies],
        }

    # ------------------------------------------------------------------ #
    # Games                                                               #
    # ------------------------------------------------------------------ #

    @app.post("/api/games")
    async def create_game(body: CreateGameRequest):
        game = await game_service.create(
            body.mode,
            bot_id=body.bot_id,
            human_color=body.human_color,
            white_name=body.white_name,
            black_name=body.black_name,
        )
        return game.snapshot()

    @app.get("/api/games/{game_id}")
    async def get_game(game_id: str):
        return (await game_service.get(game_id)).snapshot()

    @app.post("/api/games/{game_id}/move")
    async def game_move(game_id: str, body: MoveRequest):
        game = await game_service.move(
            game_id, body.from_square, body.to_square, body.promotion, body.use_chaos_token
        )
        return game.snapshot()

    @app.post("/api/games/{game_id}/ai-move")
    async def game_ai_move(game_id: str):
        return (await game_service.ai_move(game_id)).snapshot()

    @app.post("/api/games/{game_id}/resign")
    async def game_resign(game_id: str):
        return (await game_service.resign(game_id)).snapshot()

    @app.post("/api/games/{game_id}/reset")
    async def game_reset(game_id: str):
        return (await game_service.reset(game_id)).snapshot()

    @app.post("/api/games/{game_id}/rps")
    async def game_rps(game_id: str, body: LocalRpsRequest):
        return (await game_service.rps(game_id, body.side, body.choice)).snapshot()

    # ------------------------------------------------------------------ #
    # Matchmaking                                                         #
    # ------------------------------------------------------------------ #

    def _queue_response(result: QueueResult) -> dict:
        return {
            "status": result.status,
            "room_id": result.room_id,
            "match": result.match.snapshot() if result.match else None,
        }

    @app.post("/api/matchmaking/join")
    async def matchmaking_join(body: JoinRequest):
        result = await matchmaker.join(body.player_id, body.display_name, body.time_control)
        return _queue_response(result)

    @app.post("/api/matchmaking/leave")
    async def matchmaking_leave(body: PlayerRequest):
        return {"left": await matchmaker.leave(body.player_id)}

    @app.get("/api/matchmaking/status/{player_id}")
    async def matchmaking_status(player_id: str):
        return _queue_response(await matchmaker.status(player_id))

    # ------------------------------------------------------------------ #
    # Online matches                                                      #
    # ------------------------------------------------------------------ #

    @app.get("/api/matches/{room_id}")
    async def get_match(room_id: str):
        return (await match_service.get(room_id)).snapshot()

    @app.post("/api/matches/{room_id}/rps")
    async def match_rps(room_id: str, body: MatchRpsRequest):
        return (await match_service.rps(room_id, body.player_id, body.choice)).snapshot()

    @app.post("/api/matches/{room_id}/move")
    async def match_move(room_id: str, body: MatchMoveRequest):
        match = await match_service.move(
            room_id,
            body.player_id,
            body.from_square,
            body.to_square,
            body.promotion,
            body.use_chaos_token,
        )
        return match.snapshot()

    @app.post("/api/matches/{room_id}/resign")
    async def match_resign(room_id: str, body: PlayerRequest):
        return (await match_service.resign(room_id, body.player_id)).snapshot()

    @app.post("/api/matches/{room_id}/draw")
    async def match_draw(room_id: str, body: DrawRequest):
        return (await match_service.draw(room_id, body.player_id, body.action)).snapshot()

    @app.post("/api/matches/{room_id}/chat")
    async def match_chat(room_id: str, body: ChatRequest):
        return (await match_service.chat(room_id, body.player_id, body.message)).snapshot()

    return app
