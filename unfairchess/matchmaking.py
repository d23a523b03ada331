"""
Matchmaking queue: pairs waiting players into online matches.

Queue entries are bucketed by time control. The scan-and-pair step runs
under the bucket's lock, so two players joining the same bucket at the
same moment are paired by whichever join runs second. Lock order is
bucket first, then match.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from unfairchess import match as matches
from unfairchess.config import DuelConfig
from unfairchess.errors import InvalidRequest
from unfairchess.locks import KeyedLocks
from unfairchess.models import OnlineMatch, QueueEntry
from unfairchess.service import Clock, MatchService, match_lock, new_id
from unfairchess.store import SQLStore

logger = logging.getLogger(__name__)

QueueStatus = Literal["matched", "waiting", "idle"]


def bucket_lock(time_control: str) -> str:
    return f"queue:{time_control}"


@dataclass
class QueueResult:
    status: QueueStatus
    match: OnlineMatch | None = None

    @property
    def room_id(self) -> str | None:
        return self.match.room_id if self.match else None


class Matchmaker:
    def __init__(
        self,
        store: SQLStore,
        locks: KeyedLocks,
        match_service: MatchService,
        duel_config: DuelConfig,
        *,
        clock: Clock,
    ) -> None:
        self._store = store
        self._locks = locks
        self._matches = match_service
        self._duel = duel_config
        self._clock = clock

    async def join(
        self,
        player_id: str,
        display_name: str,
        time_control: str | None = None,
    ) -> QueueResult:
        """
        Return the player's active match if there is one; otherwise pair with
        the oldest compatible waiting entry, or queue the player.
        """
        time_control = time_control or self._duel.default_time_control
        if time_control not in self._duel.time_controls:
            raise InvalidRequest(
                f"Unknown time control '{time_control}' "
                f"(choose from {', '.join(sorted(self._duel.time_controls))})."
            )
        display_name = display_name.strip() or "Anonymous"

        async with self._locks.hold(bucket_lock(time_control)):
            active = await self._active_match(player_id)
            if active is not None:
                self._store.remove_queue_entry(player_id)
                return QueueResult("matched", active)

            partner = next(
                (e for e in self._store.queue_bucket(time_control) if e.player_id != player_id),
                None,
            )
            now = self._clock()
            joiner = QueueEntry(player_id, display_name, time_control, joined_at=now)

            if partner is None:
                existing = self._store.get_queue_entry(player_id)
                if existing is not None and existing.time_control == time_control:
                    joiner.joined_at = existing.joined_at
                self._store.put_queue_entry(joiner)
                logger.info("Player %s queued for %s", player_id, time_control)
                return QueueResult("waiting")

            self._store.remove_queue_entry(partner.player_id)
            self._store.remove_queue_entry(player_id)
            match = matches.new_match(
                new_id(),
                partner,
                joiner,
                time_seconds=self._duel.time_controls[time_control],
                rps_timeout=self._duel.rps_timeout,
                now=now,
            )
            self._store.create_match(match)
            logger.info("Match %s created: %s (white) vs %s (black), %s",
                        match.room_id, partner.player_id, player_id, time_control)
            return QueueResult("matched", match)

    async def leave(self, player_id: str) -> bool:
        """Dequeue the player. False (not an error) when they were not queued."""
        entry = self._store.get_queue_entry(player_id)
        if entry is None:
            return False
        async with self._locks.hold(bucket_lock(entry.time_control)):
            removed = self._store.remove_queue_entry(player_id)
        if removed:
            logger.info("Player %s left the %s queue", player_id, entry.time_control)
        return removed

    async def status(self, player_id: str) -> QueueResult:
        active = await self._active_match(player_id)
        if active is not None:
            return QueueResult("matched", active)
        if self._store.get_queue_entry(player_id) is not None:
            return QueueResult("waiting")
        return QueueResult("idle")

    async def _active_match(self, player_id: str) -> OnlineMatch | None:
        """The player's unfinished match, after expiring anything that is due."""
        found = self._store.find_active_match_for(player_id)
        if found is None:
            return None
        async with self._locks.hold(match_lock(found.room_id)):
            match = self._matches.settle_locked(self._store.get_match(found.room_id))
        return None if match.is_over else match
