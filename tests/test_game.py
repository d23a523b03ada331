import unittest

from unfairchess import game as games
from unfairchess.errors import (
    GameAlreadyOver,
    IllegalMove,
    InvalidRequest,
    OutOfTurn,
    WrongPhase,
)
from unfairchess.models import STARTING_FEN, Game, OpponentProfile
from unfairchess.players.chain import AiTurn
from unfairchess.position import Position
from unfairchess.resolver import resolve_move

NEXUS = OpponentProfile(kind="bot", bot_id="nexus-7", name="NEXUS-7", personality="aggressive")
HUMANS = OpponentProfile(kind="humans", white_name="Ann", black_name="Bob")


def _bot_game(human_color: str = "white") -> Game:
    return games.new_game("g1", "bot", NEXUS, human_color)


def _local_game() -> Game:
    """Local duel past its RPS phase; white holds the chaos token."""
    game = games.new_game("d1", "local", HUMANS)
    games.submit_rps(game, "white", "rock")
    games.submit_rps(game, "black", "scissors")
    return game


def _ai_turn(game: Game, src: str, dst: str, comment: str = "Tremble.") -> AiTurn:
    resolved = resolve_move(Position.from_fen(game.fen), src, dst, allow_illegal=True)
    return AiTurn(strategy="primary", source="fake/model", move=resolved, comment=comment)


def _play(game: Game, *moves: str) -> None:
    for uci in moves:
        games.human_move(game, uci[:2], uci[2:4])


def _set_position(game: Game, fen: str) -> None:
    game.fen = fen
    game.position_keys = [Position.from_fen(fen).repetition_key]


class BotGameTests(unittest.TestCase):
    def test_new_game_waits_for_human(self) -> None:
        game = _bot_game()
        self.assertEqual(game.fen, STARTING_FEN)
        self.assertEqual(game.status, "awaiting_human_move")
        self.assertEqual(game.status_text, "Your move.")
        self.assertIsNone(game.chaos)

    def test_human_move_then_ai_turn(self) -> None:
        game = _bot_game()
        games.human_move(game, "e2", "e4")
        self.assertEqual(game.status, "awaiting_ai_move")
        self.assertEqual(game.status_text, "NEXUS-7 is thinking...")

        games.apply_ai_turn(game, _ai_turn(game, "e7", "e5"))

        self.assertEqual(game.status, "awaiting_human_move")
        self.assertEqual(game.move_history, ["e2e4", "e7e5"])
        self.assertEqual(game.notation_history, ["e4", "e5"])
        self.assertEqual(game.ply_count, 2)
        self.assertEqual(game.last_comment, "Tremble.")
        self.assertEqual(game.last_ai_strategy, "primary")

    def test_out_of_turn_move_is_rejected_without_mutation(self) -> None:
        game = _bot_game()
        games.human_move(game, "e2", "e4")
        before = game.to_dict()
        with self.assertRaises(OutOfTurn):
            games.human_move(game, "d2", "d4")
        self.assertEqual(game.to_dict(), before)

    def test_human_playing_black_waits_for_ai(self) -> None:
        game = _bot_game("black")
        self.assertEqual(game.status, "awaiting_ai_move")
        with self.assertRaises(OutOfTurn):
            games.human_move(game, "e7", "e5")

    def test_chaos_token_does_not_exist_in_bot_games(self) -> None:
        game = _bot_game()
        with self.assertRaises(IllegalMove):
            games.human_move(game, "e2", "e5", use_chaos_token=True)

    def test_recent_comment_window_is_bounded(self) -> None:
        game = _bot_game()
        game.recent_comments = [f"line {i}" for i in range(games.RECENT_COMMENT_LIMIT)]
        games.human_move(game, "e2", "e4")
        games.apply_ai_turn(game, _ai_turn(game, "e7", "e5", comment="fresh"))
        self.assertEqual(len(game.recent_comments), games.RECENT_COMMENT_LIMIT)
        self.assertEqual(game.recent_comments[-1], "fresh")
        self.assertNotIn("line 0", game.recent_comments)

    def test_ai_turn_rejected_when_human_to_move(self) -> None:
        game = _bot_game()
        with self.assertRaises(OutOfTurn):
            games.apply_ai_turn(game, _ai_turn(game, "e2", "e4"))

    def test_ai_failure_is_recorded_in_place(self) -> None:
        game = _bot_game()
        games.human_move(game, "e2", "e4")
        fen = game.fen
        games.record_ai_failure(game, "no candidate")
        self.assertEqual(game.fen, fen)
        self.assertEqual(game.status, "awaiting_ai_move")
        self.assertEqual(game.ai_error, "no candidate")
        self.assertIn("failed to move", game.status_text)

    def test_human_resigns_in_bot_game(self) -> None:
        game = _bot_game()
        games.human_move(game, "e2", "e4")
        games.resign(game)
        self.assertTrue(game.is_over)
        self.assertEqual(game.outcome, "resigned")
        self.assertEqual(game.winner, "black")
        self.assertEqual(game.status_text, "You resigned. NEXUS-7 wins.")

    def test_rps_only_in_local_duels(self) -> None:
        with self.assertRaises(InvalidRequest):
            games.submit_rps(_bot_game(), "white", "rock")


class TerminalDetectionTests(unittest.TestCase):
    def test_fools_mate(self) -> None:
        game = _local_game()
        _play(game, "f2f3", "e7e5", "g2g4", "d8h4")
        self.assertTrue(game.is_over)
        self.assertEqual(game.outcome, "checkmate")
        self.assertEqual(game.winner, "black")
        self.assertEqual(game.status_text, "Checkmate! Bob wins.")
        with self.assertRaises(GameAlreadyOver):
            games.human_move(game, "e2", "e4")

    def test_stalemate(self) -> None:
        game = _local_game()
        _set_position(game, "7k/8/6Q1/8/8/8/8/K7 w - - 0 1")
        games.human_move(game, "g6", "f7")
        self.assertEqual(game.outcome, "stalemate")
        self.assertIsNone(game.winner)

    def test_insufficient_material(self) -> None:
        game = _local_game()
        _set_position(game, "4k3/8/8/8/8/8/3q4/4K3 w - - 0 1")
        games.human_move(game, "e1", "d2")
        self.assertEqual(game.outcome, "draw")
        self.assertEqual(game.draw_reason, "insufficient_material")

    def test_threefold_repetition(self) -> None:
        game = _local_game()
        shuffle = ("g1f3", "g8f6", "f3g1", "f6g8")
        _play(game, *shuffle)
        self.assertFalse(game.is_over)
        _play(game, *shuffle)
        self.assertEqual(game.draw_reason, "threefold_repetition")
        self.assertEqual(game.status_text, "Draw by threefold repetition.")

    def test_fifty_move_rule(self) -> None:
        game = _local_game()
        _set_position(game, "4k3/8/8/8/8/8/8/R3K3 w - - 99 80")
        games.human_move(game, "a1", "a2")
        self.assertEqual(game.draw_reason, "fifty_move")

    def test_check_flag(self) -> None:
        game = _local_game()
        _play(game, "e2e4", "f7f6", "d1h5")
        self.assertTrue(game.is_check)
        self.assertTrue(game.status_text.startswith("Check!"))


class LocalDuelTests(unittest.TestCase):
    def test_moves_wait_for_rps(self) -> None:
        game = games.new_game("d1", "local", HUMANS)
        with self.assertRaises(WrongPhase):
            games.human_move(game, "e2", "e4")

    def test_pending_choice_is_hidden_in_snapshot(self) -> None:
        game = games.new_game("d1", "local", HUMANS)
        games.submit_rps(game, "white", "paper")
        chaos = game.snapshot()["chaos"]
        self.assertEqual(chaos["rps_submitted"], {"white": True, "black": False})
        self.assertNotIn("paper", str(chaos))
        self.assertNotIn("position_keys", game.snapshot())

    def test_chaos_token_is_single_use(self) -> None:
        game = _local_game()
        resolved = games.human_move(game, "e2", "e5", use_chaos_token=True)
        self.assertTrue(resolved.was_forced)
        self.assertTrue(game.chaos.used)
        self.assertEqual(game.notation_history, ["e2-e5*"])

        games.human_move(game, "a7", "a6")
        with self.assertRaises(IllegalMove):
            games.human_move(game, "d2", "d5", use_chaos_token=True)
        # a spent token still allows ordinary moves
        games.human_move(game, "d2", "d4", use_chaos_token=True)
        self.assertEqual(game.ply_count, 3)

    def test_legal_move_keeps_the_token(self) -> None:
        game = _local_game()
        resolved = games.human_move(game, "e2", "e4", use_chaos_token=True)
        self.assertFalse(resolved.was_forced)
        self.assertTrue(game.chaos.available)

    def test_promotion_hint_does_not_spend_the_token(self) -> None:
        game = _local_game()
        resolved = games.human_move(game, "e2", "e4", "q", use_chaos_token=True)
        self.assertEqual(resolved.notation, "e4")
        self.assertFalse(resolved.was_forced)
        self.assertFalse(game.chaos.used)

    def test_token_only_works_for_its_holder(self) -> None:
        game = _local_game()
        games.human_move(game, "e2", "e4")
        with self.assertRaises(IllegalMove):
            games.human_move(game, "e7", "e3", use_chaos_token=True)

    def test_side_to_move_resigns(self) -> None:
        game = _local_game()
        games.human_move(game, "e2", "e4")
        games.resign(game)
        self.assertEqual(game.winner, "white")
        self.assertEqual(game.status_text, "Bob resigned. Ann wins.")
        with self.assertRaises(GameAlreadyOver):
            games.resign(game)

    def test_reset_reruns_rps(self) -> None:
        game = _local_game()
        games.human_move(game, "e2", "e5", use_chaos_token=True)
        games.reset(game)

        self.assertEqual(game.id, "d1")
        self.assertEqual(game.fen, STARTING_FEN)
        self.assertEqual(game.move_history, [])
        self.assertEqual(game.notation_history, [])
        self.assertEqual(game.ply_count, 0)
        self.assertFalse(game.is_over)
        self.assertEqual(game.chaos.phase, "rps")
        self.assertIsNone(game.chaos.holder)
        self.assertFalse(game.chaos.used)

    def test_record_round_trips_through_dict(self) -> None:
        game = _local_game()
        games.human_move(game, "e2", "e4")
        restored = Game.from_dict(game.to_dict())
        self.assertEqual(restored, game)
