"""
Durable storage for games, online matches and the matchmaking queue.

Each record is stored as its JSON payload (Record.to_dict()) next to the
few columns that queries filter on. Reads always return fresh dataclass
copies; nothing handed out by the store is shared with another caller.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import JSON, String, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from unfairchess.errors import NotFound
from unfairchess.models import Game, OnlineMatch, QueueEntry, utc_now

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class DBGame(Base):
    __tablename__ = "games"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    mode: Mapped[str] = mapped_column(String(16))
    is_over: Mapped[bool] = mapped_column(default=False)
    payload: Mapped[dict] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)


class DBMatch(Base):
    __tablename__ = "matches"
    room_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    player1_id: Mapped[str] = mapped_column(String(128), index=True)
    player2_id: Mapped[str] = mapped_column(String(128), index=True)
    is_over: Mapped[bool] = mapped_column(default=False, index=True)
    payload: Mapped[dict] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)


class DBQueueEntry(Base):
    __tablename__ = "queue_entries"
    player_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    time_control: Mapped[str] = mapped_column(String(32), index=True)
    joined_at: Mapped[datetime]
    payload: Mapped[dict] = mapped_column(JSON)


class SQLStore:
    """Record repository implemented with SQLAlchemy; one session per call."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._sessions = session_factory

    # ------------------------------------------------------------------ #
    # Games                                                               #
    # ------------------------------------------------------------------ #

    def create_game(self, game: Game) -> Game:
        with self._sessions.begin() as db:
            db.add(DBGame(id=game.id, mode=game.mode, is_over=game.is_over, payload=game.to_dict()))
        return game

    def get_game(self, game_id: str) -> Game:
        with self._sessions() as db:
            row = db.get(DBGame, game_id)
            if row is None:
                raise NotFound(f"Game '{game_id}' does not exist.")
            return Game.from_dict(row.payload)

    def update_game(self, game: Game) -> Game:
        with self._sessions.begin() as db:
            row = db.get(DBGame, game.id)
            if row is None:
                raise NotFound(f"Game '{game.id}' does not exist.")
            row.is_over = game.is_over
            row.payload = game.to_dict()
        return game

    # ------------------------------------------------------------------ #
    # Matches                                                             #
    # ------------------------------------------------------------------ #

    def create_match(self, match: OnlineMatch) -> OnlineMatch:
        white, black = match.players
        with self._sessions.begin() as db:
            db.add(
                DBMatch(
                    room_id=match.room_id,
                    player1_id=white.player_id,
                    player2_id=black.player_id,
                    is_over=match.is_over,
                    payload=match.to_dict(),
                )
            )
        return match

    def get_match(self, room_id: str) -> OnlineMatch:
        with self._sessions() as db:
            row = db.get(DBMatch, room_id)
            if row is None:
                raise NotFound(f"Match '{room_id}' does not exist.")
            return OnlineMatch.from_dict(row.payload)

    def update_match(self, match: OnlineMatch) -> OnlineMatch:
        with self._sessions.begin() as db:
            row = db.get(DBMatch, match.room_id)
            if row is None:
                raise NotFound(f"Match '{match.room_id}' does not exist.")
            row.is_over = match.is_over
            row.payload = match.to_dict()
        return match

    def find_active_match_for(self, player_id: str) -> OnlineMatch | None:
        """The newest unfinished match the player sits in, if any."""
        query = (
            select(DBMatch)
            .where(DBMatch.is_over.is_(False))
            .where((DBMatch.player1_id == player_id) | (DBMatch.player2_id == player_id))
            .order_by(DBMatch.created_at.desc())
        )
        with self._sessions() as db:
            row = db.scalars(query).first()
            return OnlineMatch.from_dict(row.payload) if row else None

    # ------------------------------------------------------------------ #
    # Matchmaking queue                                                   #
    # ------------------------------------------------------------------ #

    def get_queue_entry(self, player_id: str) -> QueueEntry | None:
        with self._sessions() as db:
            row = db.get(DBQueueEntry, player_id)
            return QueueEntry.from_dict(row.payload) if row else None

    def put_queue_entry(self, entry: QueueEntry) -> QueueEntry:
        """Insert or replace the player's entry; a player is queued at most once."""
        with self._sessions.begin() as db:
            row = db.get(DBQueueEntry, entry.player_id)
            if row is None:
                db.add(
                    DBQueueEntry(
                        player_id=entry.player_id,
                        time_control=entry.time_control,
                        joined_at=entry.joined_at,
                        payload=entry.to_dict(),
                    )
                )
            else:
                row.time_control = entry.time_control
                row.joined_at = entry.joined_at
                row.payload = entry.to_dict()
        return entry

    def remove_queue_entry(self, player_id: str) -> bool:
        with self._sessions.begin() as db:
            row = db.get(DBQueueEntry, player_id)
            if row is None:
                return False
            db.delete(row)
            return True

    def queue_bucket(self, time_control: str) -> list[QueueEntry]:
        """Entries waiting for time_control, oldest first."""
        query = (
            select(DBQueueEntry)
            .where(DBQueueEntry.time_control == time_control)
            .order_by(DBQueueEntry.joined_at)
        )
        with self._sessions() as db:
            return [QueueEntry.from_dict(row.payload) for row in db.scalars(query)]


def create_engine_for(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def create_store(database_url: str) -> SQLStore:
    """Build an engine for database_url, create missing tables and wrap it in a store."""
    engine = create_engine_for(database_url)
    Base.metadata.create_all(bind=engine)
    logger.info("Store ready at %s", engine.url.render_as_string(hide_password=True))
    return SQLStore(sessionmaker(bind=engine, autoflush=False, expire_on_commit=False))
