import unittest

import chess

from unfairchess.errors import IllegalMove
from unfairchess.position import Position
from unfairchess.resolver import resolve_move


class ResolveMoveRejectionTests(unittest.TestCase):
    def test_empty_source_is_rejected_on_both_paths(self) -> None:
        start = Position.starting()
        for allow in (False, True):
            with self.subTest(allow_illegal=allow):
                with self.assertRaises(IllegalMove):
                    resolve_move(start, "e4", "e5", allow_illegal=allow)
        self.assertEqual(start.fen, chess.STARTING_FEN)

    def test_king_on_destination_is_rejected_even_when_illegal_allowed(self) -> None:
        start = Position.starting()
        with self.assertRaises(IllegalMove) as ctx:
            resolve_move(start, "d8", "e1", allow_illegal=True)
        self.assertIn("Kings cannot be captured", ctx.exception.message)

    def test_own_king_cannot_be_overwritten(self) -> None:
        with self.assertRaises(IllegalMove):
            resolve_move(Position.starting(), "d1", "e1", allow_illegal=True)

    def test_same_square_is_rejected(self) -> None:
        with self.assertRaises(IllegalMove):
            resolve_move(Position.starting(), "e2", "e2", allow_illegal=True)

    def test_malformed_square_is_rejected(self) -> None:
        with self.assertRaises(IllegalMove):
            resolve_move(Position.starting(), "z9", "e4")

    def test_illegal_move_rejected_without_permission(self) -> None:
        with self.assertRaises(IllegalMove):
            resolve_move(Position.starting(), "e2", "e5")


class ResolveMoveLegalTests(unittest.TestCase):
    def test_legal_move_matches_engine(self) -> None:
        resolved = resolve_move(Position.starting(), "e2", "e4")

        board = chess.Board()
        board.push_uci("e2e4")
        self.assertEqual(resolved.position.fen, board.fen())
        self.assertEqual(resolved.notation, "e4")
        self.assertEqual(resolved.uci, "e2e4")
        self.assertFalse(resolved.was_forced)

    def test_legal_move_preferred_when_illegal_allowed(self) -> None:
        resolved = resolve_move(Position.starting(), "G1", "f3", allow_illegal=True)
        self.assertEqual(resolved.notation, "Nf3")
        self.assertFalse(resolved.was_forced)

    def test_promotion_defaults_to_queen(self) -> None:
        position = Position.from_fen("8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
        resolved = resolve_move(position, "e7", "e8")
        self.assertEqual(resolved.uci, "e7e8q")
        self.assertEqual(resolved.position.piece_at("e8"), chess.Piece(chess.QUEEN, chess.WHITE))

    def test_explicit_underpromotion(self) -> None:
        position = Position.from_fen("8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
        resolved = resolve_move(position, "e7", "e8", promotion="n")
        self.assertEqual(resolved.notation, "e8=N")

    def test_promotion_hint_on_ordinary_move_is_ignored(self) -> None:
        for allow in (False, True):
            with self.subTest(allow_illegal=allow):
                resolved = resolve_move(Position.starting(), "e2", "e4", "q", allow_illegal=allow)
                self.assertEqual(resolved.notation, "e4")
                self.assertEqual(resolved.uci, "e2e4")
                self.assertFalse(resolved.was_forced)

    def test_promotion_hint_on_knight_move(self) -> None:
        resolved = resolve_move(Position.starting(), "g1", "f3", promotion="q")
        self.assertEqual(resolved.notation, "Nf3")


class ForcedRelocationTests(unittest.TestCase):
    def test_relocation_flips_turn_and_moves_one_piece(self) -> None:
        start = Position.starting()
        resolved = resolve_move(start, "e2", "e5", allow_illegal=True)

        self.assertTrue(resolved.was_forced)
        self.assertEqual(resolved.notation, "e2-e5*")
        self.assertEqual(resolved.uci, "e2e5")
        self.assertEqual(resolved.position.side_to_move, "black")
        self.assertIsNone(resolved.position.piece_at("e2"))
        self.assertEqual(resolved.position.piece_at("e5"), chess.Piece(chess.PAWN, chess.WHITE))
        # the input position is a value and stays as it was
        self.assertEqual(start.fen, chess.STARTING_FEN)

    def test_relocation_captures_through_illegality(self) -> None:
        resolved = resolve_move(Position.starting(), "d1", "d7", allow_illegal=True)
        self.assertEqual(resolved.position.piece_at("d7"), chess.Piece(chess.QUEEN, chess.WHITE))
        self.assertEqual(resolved.position.halfmove_clock, 0)

    def test_relocated_pawn_on_back_rank_promotes(self) -> None:
        resolved = resolve_move(Position.starting(), "a2", "a8", allow_illegal=True)
        self.assertEqual(resolved.position.piece_at("a8"), chess.Piece(chess.QUEEN, chess.WHITE))
        self.assertEqual(resolved.uci, "a2a8q")

    def test_relocated_underpromotion_is_recorded(self) -> None:
        resolved = resolve_move(Position.starting(), "b2", "b8", "n", allow_illegal=True)
        self.assertEqual(resolved.uci, "b2b8n")
        self.assertEqual(resolved.position.piece_at("b8"), chess.Piece(chess.KNIGHT, chess.WHITE))

    def test_relocated_piece_keeps_plain_uci(self) -> None:
        resolved = resolve_move(Position.starting(), "d1", "d7", "q", allow_illegal=True)
        self.assertEqual(resolved.uci, "d1d7")

    def test_relocation_drops_stale_castling_rights(self) -> None:
        resolved = resolve_move(Position.starting(), "h1", "h5", allow_illegal=True)
        castling = resolved.position.fen.split()[2]
        self.assertNotIn("K", castling)
        self.assertIn("Q", castling)

    def test_black_relocation_advances_fullmove_number(self) -> None:
        after_white = resolve_move(Position.starting(), "e2", "e4").position
        after_black = resolve_move(after_white, "b8", "b4", allow_illegal=True).position
        self.assertEqual(after_black.side_to_move, "white")
        self.assertEqual(after_black.fen.split()[5], "2")

    def test_either_colour_may_be_relocated(self) -> None:
        resolved = resolve_move(Position.starting(), "e7", "e3", allow_illegal=True)
        self.assertEqual(resolved.position.piece_at("e3"), chess.Piece(chess.PAWN, chess.BLACK))
        self.assertEqual(resolved.position.side_to_move, "black")


class PositionTests(unittest.TestCase):
    def test_with_side_to_move_keeps_placement(self) -> None:
        start = Position.starting()
        flipped = start.with_side_to_move("black")
        self.assertEqual(flipped.side_to_move, "black")
        self.assertEqual(flipped.fen.split()[0], start.fen.split()[0])

    def test_repetition_key_ignores_clocks(self) -> None:
        a = Position.from_fen("4k3/8/8/8/8/8/8/4K3 w - - 0 1")
        b = Position.from_fen("4k3/8/8/8/8/8/8/4K3 w - - 12 40")
        self.assertEqual(a.repetition_key, b.repetition_key)

    def test_legal_moves_exclude_king_captures(self) -> None:
        # black king en prise after an illegal position: white to move
        position = Position.from_fen("4k3/8/8/8/8/8/8/4RK2 w - - 0 1")
        self.assertNotIn("e1e8", position.legal_moves_uci())
        self.assertIn("e1e7", position.legal_moves_uci())
