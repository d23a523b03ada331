"""
Opponent factory.

create_opponent_chain() is the single entry point for building the AI side
of bot games from config: one LLMOpponent per configured model reference,
in priority order, with the random strategy always appended by the chain.

A model reference whose provider is missing or has no credentials is
skipped with a warning; with no usable models the chain is random-only.
"""

from __future__ import annotations

import logging
import random

from unfairchess.config import Config
from unfairchess.conv_logger import ConversationLogger
from unfairchess.players.base import NoProposal, Opponent, Proposal, TurnState
from unfairchess.players.chain import AiTurn, OpponentChain
from unfairchess.players.llm import LLMOpponent
from unfairchess.players.random_mover import RandomOpponent
from unfairchess.providers import create_provider

__all__ = [
    "AiTurn",
    "NoProposal",
    "Opponent",
    "OpponentChain",
    "Proposal",
    "TurnState",
    "LLMOpponent",
    "RandomOpponent",
    "create_opponent_chain",
]

logger = logging.getLogger(__name__)


def create_opponent_chain(config: Config, rng: random.Random | None = None) -> OpponentChain:
    conv_logger = (
        ConversationLogger(config.server.log_dir_path)
        if config.ai.log_conversations
        else None
    )
    opponents: list[Opponent] = []
    for ref in config.ai.model_chain():
        try:
            provider = create_provider(ref.provider, ref.model, config.providers)
        except ValueError as exc:
            logger.warning("Skipping AI model %s/%s: %s", ref.provider, ref.model, exc)
            continue
        opponents.append(
            LLMOpponent(
                name=provider.label,
                provider=provider,
                logger=conv_logger,
                move_timeout=config.ai.move_timeout,
                max_tokens=config.ai.max_tokens,
                temperature=config.ai.temperature,
            )
        )
    return OpponentChain(
        opponents,
        comment_retries=config.ai.comment_retries,
        comment_window=config.ai.comment_window,
        rng=rng,
    )
