from enum import IntFlag
from typing import Dict, Sequence, Tuple

import chess


class CastlingRights(IntFlag):
    NONE = 0
    WHITE_KINGSIDE = 1
    WHITE_QUEENSIDE = 2
    BLACK_KINGSIDE = 4
    BLACK_QUEENSIDE = 8
    ALL = 15

    def without(self, flags: "CastlingRights") -> "CastlingRights":
        return CastlingRights(self & ~flags)

    def fen(self) -> str:
        symbols = "".join(
            symbol for flag, symbol in _FEN_SYMBOLS if self & flag
        )
        return symbols or "-"


_FEN_SYMBOLS = (
    (CastlingRights.WHITE_KINGSIDE, "K"),
    (CastlingRights.WHITE_QUEENSIDE, "Q"),
    (CastlingRights.BLACK_KINGSIDE, "k"),
    (CastlingRights.BLACK_QUEENSIDE, "q"),
)

# The transport reports castling as the king moving onto its own rook.
CASTLING_CONVERSIONS: Dict[str, Tuple[str, CastlingRights]] = {
    "e1h1": ("e1g1", CastlingRights.WHITE_KINGSIDE),
    "e1a1": ("e1c1", CastlingRights.WHITE_QUEENSIDE),
    "e8h8": ("e8g8", CastlingRights.BLACK_KINGSIDE),
    "e8a8": ("e8c8", CastlingRights.BLACK_QUEENSIDE),
}

_RIGHTS_BY_SQUARE = {
    chess.E1: CastlingRights.WHITE_KINGSIDE | CastlingRights.WHITE_QUEENSIDE,
    chess.H1: CastlingRights.WHITE_KINGSIDE,
    chess.A1: CastlingRights.WHITE_QUEENSIDE,
    chess.E8: CastlingRights.BLACK_KINGSIDE | CastlingRights.BLACK_QUEENSIDE,
    chess.H8: CastlingRights.BLACK_KINGSIDE,
    chess.A8: CastlingRights.BLACK_QUEENSIDE,
}


def reconcile_castling(move: str, rights: CastlingRights) -> Tuple[str, CastlingRights]:
    """Rewrite transport castling notation into engine notation.

    Only the four king-onto-rook pairs are rewritten; the matching right is
    cleared as a side effect. Any other move is returned unchanged.
    """
    conversion = CASTLING_CONVERSIONS.get(move)
    if conversion is None:
        return move, rights
    converted, lost = conversion
    return converted, rights.without(lost)


def rights_touched_by(move: str) -> CastlingRights:
    parsed = chess.Move.from_uci(move)
    lost = CastlingRights.NONE
    for square in (parsed.from_square, parsed.to_square):
        lost |= _RIGHTS_BY_SQUARE.get(square, CastlingRights.NONE)
    return lost


def destination_square(move: str) -> chess.Square:
    return chess.Move.from_uci(move).to_square


def is_recapture(moves: Sequence[str]) -> bool:
    """True when the last two half-moves land on the same square."""
    if len(moves) < 2:
        return False
    return destination_square(moves[-2]) == destination_square(moves[-1])


def export_position_fen(board_fen: str, turn: chess.Color, rights: CastlingRights, fullmove_number: int) -> str:
    side = "w" if turn == chess.WHITE else "b"
    board = chess.Board(f"{board_fen} {side} {rights.fen()} - 0 {max(1, fullmove_number)}")
    return board.fen()
