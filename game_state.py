"""Authoritative view of one live game as this bot sees it."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List, Optional

import chess

from chess_logic import CastlingRights, export_position_fen, reconcile_castling, rights_touched_by

COLOR_NAME = {chess.WHITE: "White", chess.BLACK: "Black"}


class PositionMode(Enum):
    MOVES = "moves"
    FEN = "fen"


def side_to_move_after(ply: int) -> chess.Color:
    # After an even number of half-moves it is White's turn.
    return chess.WHITE if ply % 2 == 0 else chess.BLACK


def move_number_for_ply(ply: int) -> int:
    return (ply + 2) // 2


@dataclass
class GameState:
    mode: PositionMode = PositionMode.MOVES
    bot_color: Optional[chess.Color] = None
    ply_count: int = 0
    moves: List[str] = field(default_factory=list)
    board_fen: str = chess.STARTING_BOARD_FEN
    castling_rights: CastlingRights = CastlingRights.ALL
    recent_moves: Deque[str] = field(default_factory=lambda: deque(maxlen=2))
    current_eval: float = 0.0

    def assign_bot_color(self, color: chess.Color) -> None:
        if self.bot_color is not None:
            raise RuntimeError("Bot color is already assigned for this game")
        self.bot_color = color

    @property
    def side_to_move(self) -> chess.Color:
        return side_to_move_after(self.ply_count)

    @property
    def move_number(self) -> int:
        return move_number_for_ply(self.ply_count)

    def is_bot_turn(self) -> bool:
        return self.bot_color is not None and self.side_to_move == self.bot_color

    def apply_inbound_move(self, ply: int, uci: Optional[str], board_fen: Optional[str] = None) -> Optional[str]:
        """Record a move reported by the transport and return it in engine notation.

        Everything is computed before anything is committed, so a malformed
        move or board leaves the state untouched.
        """
        rights = self.castling_rights
        move = None
        if uci:
            move, rights = reconcile_castling(uci, rights)
            rights = rights.without(rights_touched_by(move))

        if self.mode is PositionMode.FEN:
            if board_fen is None or not board_fen.split():
                raise ValueError("Move event carries no board position")
            board_fen = board_fen.split()[0]
            export_position_fen(board_fen, side_to_move_after(ply), rights, move_number_for_ply(ply))
            self.board_fen = board_fen
        elif move is None:
            raise ValueError("Move event carries no move")
        else:
            self.moves.append(move)

        if move is not None:
            self.recent_moves.append(move)
        self.castling_rights = rights
        self.ply_count = ply
        return move

    def apply_own_move(self, uci: str) -> None:
        self.castling_rights = self.castling_rights.without(rights_touched_by(uci))
        if self.mode is PositionMode.MOVES:
            self.moves.append(uci)
        self.recent_moves.append(uci)
        self.ply_count += 1

    def position_command(self) -> str:
        if self.mode is PositionMode.FEN:
            fen = export_position_fen(self.board_fen, self.side_to_move, self.castling_rights, self.move_number)
            return f"fen {fen}"
        if not self.moves:
            return "startpos"
        return "startpos moves " + " ".join(self.moves)
