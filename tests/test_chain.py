import asyncio
import random
import tempfile
import unittest
from pathlib import Path

from unfairchess.conv_logger import ConversationLogger
from unfairchess.errors import AiProviderFailure
from unfairchess.personas import GENERIC_COMMENTS, KING_SPARED_COMMENT, SILENT_COMMENT
from unfairchess.players.base import NoProposal
from unfairchess.players.chain import OpponentChain
from unfairchess.players.llm import LLMOpponent, parse_reply
from unfairchess.position import Position
from unfairchess.providers.base import LLMProvider, Message, ProviderError
from unfairchess.resolver import resolve_move


class _FakeProvider(LLMProvider):
    """Replies from a script; an Exception in the script is raised instead."""

    def __init__(self, replies: list, *, name: str = "fake/model", delay: float = 0.0) -> None:
        provider, _, model = name.partition("/")
        super().__init__(model)
        self.provider_name = provider
        self._replies = list(replies)
        self._delay = delay
        self.calls: list[list[Message]] = []

    async def _send(self, messages, *, max_tokens, temperature) -> str:
        self.calls.append(messages)
        if self._delay:
            await asyncio.sleep(self._delay)
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _after_e4() -> Position:
    return resolve_move(Position.starting(), "e2", "e4").position


def _chain(*providers: _FakeProvider, move_timeout: float = 2.0, **kwargs) -> OpponentChain:
    opponents = [
        LLMOpponent(name=p.label, provider=p, move_timeout=move_timeout) for p in providers
    ]
    return OpponentChain(opponents, rng=random.Random(7), **kwargs)


async def _play(chain: OpponentChain, position: Position | None = None, recent=None):
    return await chain.play(
        position or _after_e4(),
        game_id="g1",
        persona_name="NEXUS-7",
        personality="aggressive",
        move_history=["e4"],
        recent_comments=recent or [],
    )


class ParseReplyTests(unittest.TestCase):
    def test_plain_line(self) -> None:
        proposal = parse_reply("e7 e5 Your pieces tremble")
        self.assertEqual((proposal.from_square, proposal.to_square), ("e7", "e5"))
        self.assertEqual(proposal.comment, "Your pieces tremble")

    def test_move_found_on_later_line_with_separators(self) -> None:
        proposal = parse_reply("Thinking hard.\nMove: e7-e5 - 'Fear me'")
        self.assertEqual(proposal.to_square, "e5")
        self.assertEqual(proposal.comment, "Fear me")

    def test_promotion_letter(self) -> None:
        proposal = parse_reply("e7e8q Long live the queen")
        self.assertEqual(proposal.promotion, "q")
        self.assertEqual(proposal.comment, "Long live the queen")

    def test_comment_is_cut_and_defaulted(self) -> None:
        self.assertEqual(len(parse_reply("a7 a5 " + "x" * 400).comment), 150)
        self.assertEqual(parse_reply("a7 a5").comment, SILENT_COMMENT)

    def test_no_move(self) -> None:
        with self.assertRaises(NoProposal):
            parse_reply("I refuse to play.")


class OpponentChainTests(unittest.IsolatedAsyncioTestCase):
    async def test_primary_legal_move(self) -> None:
        provider = _FakeProvider(["e7 e5 Tremble."])
        turn = await _play(_chain(provider))

        self.assertEqual(turn.strategy, "primary")
        self.assertEqual(turn.source, "fake/model")
        self.assertEqual(turn.move.notation, "e5")
        self.assertFalse(turn.move.was_forced)
        self.assertEqual(turn.comment, "Tremble.")

    async def test_primary_illegal_move_is_forced(self) -> None:
        turn = await _play(_chain(_FakeProvider(["d8 d2 Teleport!"])))
        self.assertEqual(turn.move.notation, "d8-d2*")
        self.assertTrue(turn.move.was_forced)
        self.assertEqual(turn.move.position.side_to_move, "white")

    async def test_provider_error_falls_back(self) -> None:
        primary = _FakeProvider([ProviderError("fake", "boom")])
        backup = _FakeProvider(["g8 f6 Plan B."], name="backup/model")
        turn = await _play(_chain(primary, backup))
        self.assertEqual(turn.strategy, "fallback:1")
        self.assertEqual(turn.source, "backup/model")

    async def test_timeout_falls_back(self) -> None:
        slow = _FakeProvider(["e7 e5 Too late."], delay=1.0)
        backup = _FakeProvider(["g8 f6 Fast."], name="backup/model")
        turn = await _play(_chain(slow, backup, move_timeout=0.05))
        self.assertEqual(turn.strategy, "fallback:1")

    async def test_unparseable_reply_falls_to_random(self) -> None:
        turn = await _play(_chain(_FakeProvider(["I resign from this conversation."])))
        self.assertEqual(turn.strategy, "random")
        self.assertIn(turn.move.uci, _after_e4().legal_moves_uci())
        self.assertIn(turn.comment, GENERIC_COMMENTS)

    async def test_king_capture_attempt_spares_the_king(self) -> None:
        turn = await _play(_chain(_FakeProvider(["d8 e1 Off with his head!"])))
        self.assertEqual(turn.strategy, "random")
        self.assertEqual(turn.comment, KING_SPARED_COMMENT)
        self.assertFalse(turn.move.was_forced)

    async def test_duplicate_comment_is_retried(self) -> None:
        provider = _FakeProvider(["e7 e5 Same old.", "e7 e5 Something new."])
        turn = await _play(_chain(provider), recent=["Same old."])

        self.assertEqual(turn.comment, "Something new.")
        self.assertEqual(len(provider.calls), 2)
        self.assertIn("Correction", provider.calls[1][1].content)
        self.assertIn("Same old.", provider.calls[0][1].content)

    async def test_duplicate_comment_falls_back_to_pool(self) -> None:
        provider = _FakeProvider(["e7 e5 Same old."] * 3)
        turn = await _play(_chain(provider, comment_retries=2), recent=["Same old."])

        self.assertEqual(len(provider.calls), 3)
        self.assertEqual(turn.strategy, "primary")
        self.assertIn(turn.comment, GENERIC_COMMENTS)

    async def test_exhausted_chain_raises(self) -> None:
        stalemated = Position.from_fen("7k/5Q2/8/8/8/8/8/K7 b - - 0 1")
        with self.assertRaises(AiProviderFailure):
            await _play(OpponentChain([]), position=stalemated)

    async def test_strategies_are_listed_in_order(self) -> None:
        chain = _chain(_FakeProvider([]), _FakeProvider([], name="b/m"))
        self.assertEqual(
            chain.strategies,
            [("primary", "fake/model"), ("fallback:1", "b/m"), ("random", "random")],
        )


class LLMOpponentTests(unittest.IsolatedAsyncioTestCase):
    async def test_prompt_carries_persona_and_legal_moves(self) -> None:
        provider = _FakeProvider(["e7 e5 Hi."])
        await _play(_chain(provider))
        system, user = provider.calls[0]
        self.assertEqual(system.role, "system")
        self.assertIn("NEXUS-7", system.content)
        self.assertIn("AGGRESSIVE", system.content)
        self.assertIn("Nf6", user.content)

    async def test_conversation_is_logged(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            conv = ConversationLogger(Path(tmp))
            provider = _FakeProvider(["e7 e5 Logged."])
            opponent = LLMOpponent(name="fake", provider=provider, logger=conv)
            await OpponentChain([opponent]).play(
                _after_e4(),
                game_id="abc",
                persona_name="OMEGA",
                personality="cold",
                move_history=[],
                recent_comments=[],
            )
            text = conv.path_for("abc").read_text(encoding="utf-8")
        self.assertIn("[SYSTEM]", text)
        self.assertIn("e7 e5 Logged.", text)
