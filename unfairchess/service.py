"""
Service layer: the only place that combines records, the store and locks.

Every mutating call follows the same shape:
  acquire the per-id lock -> load a fresh record -> apply one state-machine
  transition -> persist -> return the record.
A transition that raises is never persisted, so concurrent requests on the
same id are applied one after another and each sees the previous result.
"""

from __future__ import annotations

import logging
import random
import uuid
from collections.abc import Callable
from datetime import datetime

from unfairchess import game as games
from unfairchess import match as matches
from unfairchess.config import DuelConfig
from unfairchess.errors import (
    AiProviderFailure,
    GameAlreadyOver,
    InvalidRequest,
    OutOfTurn,
    UnfairChessError,
)
from unfairchess.locks import KeyedLocks
from unfairchess.models import Color, Game, GameMode, OnlineMatch, OpponentProfile, utc_now
from unfairchess.personas import BOTS, find_bot
from unfairchess.players.chain import OpponentChain
from unfairchess.position import Position
from unfairchess.store import SQLStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def new_id() -> str:
    return uuid.uuid4().hex


def game_lock(game_id: str) -> str:
    return f"game:{game_id}"


def match_lock(room_id: str) -> str:
    return f"match:{room_id}"


class GameService:
    """Bot games and local duels."""

    def __init__(
        self,
        store: SQLStore,
        chain: OpponentChain,
        locks: KeyedLocks,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._chain = chain
        self._locks = locks
        self._rng = rng or random.Random()

    async def create(
        self,
        mode: GameMode,
        *,
        bot_id: str | None = None,
        human_color: str = "white",
        white_name: str | None = None,
        black_name: str | None = None,
    ) -> Game:
        if mode == "bot":
            bot = find_bot(bot_id) if bot_id else self._rng.choice(BOTS)
            if bot is None:
                raise InvalidRequest(f"Unknown bot '{bot_id}'.")
            if human_color not in ("white", "black", "random"):
                raise InvalidRequest(f"'{human_color}' is not white, black or random.")
            opponent = OpponentProfile(
                kind="bot", bot_id=bot.id, name=bot.name, personality=bot.personality
            )
            color: Color = (
                self._rng.choice(("white", "black")) if human_color == "random" else human_color
            )
        elif mode == "local":
            opponent = OpponentProfile(
                kind="humans",
                white_name=(white_name or "").strip() or "White",
                black_name=(black_name or "").strip() or "Black",
            )
            color = "white"
        else:
            raise InvalidRequest(f"Unknown game mode '{mode}'.")

        game = games.new_game(new_id(), mode, opponent, color)
        async with self._locks.hold(game_lock(game.id)):
            self._store.create_game(game)
            logger.info("Created %s game %s (%s, human plays %s)",
                        mode, game.id, opponent.display_name("black"), color)
            if game.status == "awaiting_ai_move":
                await self._run_ai_turn(game)
                self._store.update_game(game)
        return game

    async def get(self, game_id: str) -> Game:
        return self._store.get_game(game_id)

    async def move(
        self,
        game_id: str,
        from_square: str,
        to_square: str,
        promotion: str | None = None,
        use_chaos_token: bool = False,
    ) -> Game:
        """Apply the human move, then the AI reply in the same request."""
        async with self._locks.hold(game_lock(game_id)):
            game = self._store.get_game(game_id)
            resolved = games.human_move(game, from_square, to_square, promotion, use_chaos_token)
            logger.info("Game %s: %s%s", game_id, resolved.notation,
                        " (chaos token)" if resolved.was_forced else "")
            self._store.update_game(game)
            if game.status == "awaiting_ai_move":
                await self._run_ai_turn(game)
                self._store.update_game(game)
            return game

    async def ai_move(self, game_id: str) -> Game:
        """
        Retry the AI half of the turn after a recorded failure.

        Raises:
            AiProviderFailure: the chain failed again (the failure is saved first).
        """
        async with self._locks.hold(game_lock(game_id)):
            game = self._store.get_game(game_id)
            if game.is_over:
                raise GameAlreadyOver("Game is over.")
            if game.status != "awaiting_ai_move":
                raise OutOfTurn("It is not the AI's turn.")
            ok = await self._run_ai_turn(game)
            self._store.update_game(game)
            if not ok:
                raise AiProviderFailure(game.ai_error or "The AI could not move.")
            return game

    async def resign(self, game_id: str) -> Game:
        async with self._locks.hold(game_lock(game_id)):
            game = self._store.get_game(game_id)
            loser = games.resign(game)
            logger.info("Game %s: %s resigned", game_id, loser)
            return self._store.update_game(game)

    async def reset(self, game_id: str) -> Game:
        async with self._locks.hold(game_lock(game_id)):
            game = self._store.get_game(game_id)
            games.reset(game)
            logger.info("Game %s reset", game_id)
            self._store.update_game(game)
            if game.status == "awaiting_ai_move":
                await self._run_ai_turn(game)
                self._store.update_game(game)
            return game

    async def rps(self, game_id: str, side: Color, choice: str) -> Game:
        async with self._locks.hold(game_lock(game_id)):
            game = self._store.get_game(game_id)
            games.submit_rps(game, side, choice)
            return self._store.update_game(game)

    async def _run_ai_turn(self, game: Game) -> bool:
        """Play the AI side on game in place. False when the chain gave up."""
        try:
            turn = await self._chain.play(
                Position.from_fen(game.fen),
                game_id=game.id,
                persona_name=game.opponent.display_name("black"),
                personality=game.opponent.personality,
                move_history=game.notation_history,
                recent_comments=game.recent_comments,
            )
        except AiProviderFailure as exc:
            games.record_ai_failure(game, exc.message)
            return False
        games.apply_ai_turn(game, turn)
        return True


class MatchService:
    """Online duels. Time-based endings are settled on every access."""

    def __init__(
        self,
        store: SQLStore,
        locks: KeyedLocks,
        duel_config: DuelConfig,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._locks = locks
        self._duel = duel_config
        self._clock = clock

    async def get(self, room_id: str) -> OnlineMatch:
        async with self._locks.hold(match_lock(room_id)):
            return self.settle_locked(self._store.get_match(room_id))

    async def rps(self, room_id: str, player_id: str, choice: str) -> OnlineMatch:
        return await self._apply(
            room_id, lambda match, now: matches.submit_rps(match, player_id, choice, now)
        )

    async def move(
        self,
        room_id: str,
        player_id: str,
        from_square: str,
        to_square: str,
        promotion: str | None = None,
        use_chaos_token: bool = False,
    ) -> OnlineMatch:
        return await self._apply(
            room_id,
            lambda match, now: matches.move(
                match, player_id, from_square, to_square, promotion, use_chaos_token, now
            ),
        )

    async def resign(self, room_id: str, player_id: str) -> OnlineMatch:
        return await self._apply(
            room_id, lambda match, now: matches.resign(match, player_id, now)
        )

    async def draw(self, room_id: str, player_id: str, action: str) -> OnlineMatch:
        return await self._apply(
            room_id, lambda match, now: matches.draw(match, player_id, action, now)
        )

    async def chat(self, room_id: str, player_id: str, text: str) -> OnlineMatch:
        return await self._apply(
            room_id,
            lambda match, now: matches.chat(
                match,
                player_id,
                text,
                now,
                limit=self._duel.chat_limit,
                max_length=self._duel.chat_max_length,
            ),
        )

    def settle_locked(self, match: OnlineMatch) -> OnlineMatch:
        """Settle a match already loaded by a caller holding the match lock."""
        if matches.settle(match, self._clock()):
            self._store.update_match(match)
        return match

    async def _apply(self, room_id: str, transition: Callable[[OnlineMatch, datetime], object]) -> OnlineMatch:
        async with self._locks.hold(match_lock(room_id)):
            match = self._store.get_match(room_id)
            now = self._clock()
            settled = matches.settle(match, now)
            try:
                transition(match, now)
            except UnfairChessError:
                if settled:
                    # the transition saw the settled state; keep the settlement
                    self._store.update_match(match)
                raise
            return self._store.update_match(match)
