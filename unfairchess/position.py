"""
Thin facade over python-chess Board.

Provides the exact interface the resolver and the state machines need
without leaking python-chess internals into the rest of the codebase
(easier to unit-test and swap out).

Positions are values: every transformation returns a new Position and
leaves the original untouched.
"""

from __future__ import annotations

import chess

from unfairchess.errors import IllegalMove
from unfairchess.models import Color

_PROMOTION_PIECES = {
    "q": chess.QUEEN,
    "r": chess.ROOK,
    "b": chess.BISHOP,
    "n": chess.KNIGHT,
}
_BACK_RANKS = (0, 7)


def parse_square(name: str) -> chess.Square:
    """Algebraic square name (e.g. "e4") to a python-chess square index."""
    try:
        return chess.parse_square(name.strip().lower())
    except (ValueError, AttributeError):
        raise IllegalMove(f"'{name}' is not a square on the board.")


def parse_promotion(piece: str | None) -> chess.PieceType | None:
    if not piece:
        return None
    try:
        return _PROMOTION_PIECES[piece.strip().lower()[0]]
    except (KeyError, IndexError):
        raise IllegalMove(f"'{piece}' is not a promotion piece (use q, r, b or n).")


def to_color(turn: chess.Color) -> Color:
    return "white" if turn == chess.WHITE else "black"


def opposite(color: Color) -> Color:
    return "black" if color == "white" else "white"


class Position:
    """Facade over chess.Board."""

    def __init__(self, board: chess.Board) -> None:
        self._board = board

    @classmethod
    def starting(cls) -> Position:
        return cls(chess.Board())

    @classmethod
    def from_fen(cls, fen: str) -> Position:
        return cls(chess.Board(fen))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Position) and other.fen == self.fen

    def __repr__(self) -> str:
        return f"Position({self.fen!r})"

    # ------------------------------------------------------------------ #
    # State queries                                                        #
    # ------------------------------------------------------------------ #

    @property
    def fen(self) -> str:
        return self._board.fen()

    @property
    def side_to_move(self) -> Color:
        return to_color(self._board.turn)

    @property
    def repetition_key(self) -> str:
        """Placement, turn, castling and en passant: the fields that define 'same position'."""
        return " ".join(self.fen.split()[:4])

    @property
    def halfmove_clock(self) -> int:
        return self._board.halfmove_clock

    @property
    def is_check(self) -> bool:
        return self._board.is_check()

    def is_checkmate(self) -> bool:
        return self._board.is_checkmate()

    def is_stalemate(self) -> bool:
        return self._board.is_stalemate()

    def is_insufficient_material(self) -> bool:
        return self._board.is_insufficient_material()

    def piece_at(self, square: str) -> chess.Piece | None:
        return self._board.piece_at(parse_square(square))

    def is_king_at(self, square: str) -> bool:
        piece = self.piece_at(square)
        return piece is not None and piece.piece_type == chess.KING

    def legal_moves(self) -> list[chess.Move]:
        """Legal moves for the side to move, minus any that would capture a king."""
        return [
            m for m in self._board.legal_moves
            if self._board.piece_type_at(m.to_square) != chess.KING
        ]

    def legal_moves_uci(self) -> list[str]:
        return [m.uci() for m in self.legal_moves()]

    def legal_moves_san(self) -> list[str]:
        return [self._board.san(m) for m in self.legal_moves()]

    def render_ascii(self) -> str:
        return str(self._board)

    # ------------------------------------------------------------------ #
    # Move application                                                    #
    # ------------------------------------------------------------------ #

    def find_legal_move(
        self,
        from_square: str,
        to_square: str,
        promotion: str | None = None,
    ) -> chess.Move | None:
        """
        Build the move from coordinates and return it if the engine accepts it.

        The promotion piece only applies to a pawn reaching the back rank
        (queen when none is given); anywhere else it is ignored, since
        clients send one with every move.
        """
        src = parse_square(from_square)
        dst = parse_square(to_square)
        promo = None
        if (
            self._board.piece_type_at(src) == chess.PAWN
            and chess.square_rank(dst) in _BACK_RANKS
        ):
            promo = parse_promotion(promotion) or chess.QUEEN
        move = chess.Move(src, dst, promotion=promo)
        return move if move in self._board.legal_moves else None

    def push_legal(self, move: chess.Move) -> tuple[Position, str]:
        """Apply a validated legal move. Returns the new position and its SAN string."""
        board = self._board.copy(stack=False)
        san = board.san(move)
        board.push(move)
        return Position(board), san

    def relocate(
        self,
        from_square: str,
        to_square: str,
        promotion: str | None = None,
    ) -> Position:
        """
        Forced relocation: lift the piece on from_square, clear to_square,
        drop the piece there and hand the turn to the other side.

        The caller is responsible for the king-safety checks; this only
        keeps the resulting position well-formed (clocks, en passant,
        castling rights, no pawns left on a back rank).
        """
        src = parse_square(from_square)
        dst = parse_square(to_square)
        board = self._board.copy(stack=False)

        piece = board.remove_piece_at(src)
        if piece is None:
            raise IllegalMove(f"There is no piece on {from_square}.")
        captured = board.remove_piece_at(dst)

        if piece.piece_type == chess.PAWN and chess.square_rank(dst) in _BACK_RANKS:
            piece = chess.Piece(parse_promotion(promotion) or chess.QUEEN, piece.color)
        board.set_piece_at(dst, piece)

        board.ep_square = None
        board.castling_rights = board.clean_castling_rights()
        if captured is not None or piece.piece_type == chess.PAWN:
            board.halfmove_clock = 0
        else:
            board.halfmove_clock += 1
        if board.turn == chess.BLACK:
            board.fullmove_number += 1

        return Position(board).with_side_to_move(opposite(self.side_to_move))

    def with_side_to_move(self, color: Color) -> Position:
        """Same placement with the turn marker set explicitly."""
        board = self._board.copy(stack=False)
        board.turn = chess.WHITE if color == "white" else chess.BLACK
        board.ep_square = None
        return Position(board)
