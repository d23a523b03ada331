"""
Unfair move resolution.

resolve_move() is the single gate every move passes through, human or AI.
It always tries the engine's strict legality first; only when that fails
and the caller permits illegality does it fall back to a forced relocation.

The king-safety checks run before anything is mutated:
  - the source square must hold a piece
  - the destination must not hold a king, whoever is moving and however
    (king capture is never a way to end the game; only checkmate is)
"""

from __future__ import annotations

from dataclasses import dataclass

from unfairchess.errors import IllegalMove
from unfairchess.position import Position, parse_square


@dataclass(frozen=True)
class ResolvedMove:
    position: Position
    uci: str         # coordinate pair as applied, e.g. "e2e4" or "e7e8q"
    notation: str    # SAN for legal moves, "e2-e5*" for forced relocations
    was_forced: bool


def resolve_move(
    position: Position,
    from_square: str,
    to_square: str,
    promotion: str | None = None,
    allow_illegal: bool = False,
) -> ResolvedMove:
    """
    Apply from_square -> to_square to position.

    Raises:
        IllegalMove: empty source, king on the destination, a no-op move,
            or (when allow_illegal is False) anything the engine rejects.
    """
    src = from_square.strip().lower()
    dst = to_square.strip().lower()
    parse_square(src)
    parse_square(dst)

    if src == dst:
        raise IllegalMove("A move must leave its square.")
    if position.piece_at(src) is None:
        raise IllegalMove(f"There is no piece on {src}.")
    if position.is_king_at(dst):
        raise IllegalMove("Kings cannot be captured.")

    legal = position.find_legal_move(src, dst, promotion)
    if legal is not None:
        new_position, san = position.push_legal(legal)
        return ResolvedMove(
            position=new_position,
            uci=legal.uci(),
            notation=san,
            was_forced=False,
        )

    if not allow_illegal:
        raise IllegalMove(f"{src}-{dst} is not a legal move.")

    relocated = position.relocate(src, dst, promotion)
    moved = position.piece_at(src)
    landed = relocated.piece_at(dst)
    # a relocated pawn that reached a back rank was promoted on the way
    suffix = landed.symbol().lower() if moved.piece_type != landed.piece_type else ""
    return ResolvedMove(
        position=relocated,
        uci=f"{src}{dst}{suffix}",
        notation=f"{src}-{dst}*",
        was_forced=True,
    )
