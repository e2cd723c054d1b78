"""UCI conversation with the analysis engine.

The session sends position/search commands through an injected
``send_command(engine, command)`` callable and is fed the engine's output
one line at a time. Analysis lines at the configured depth are collected
into a candidate batch which is handed over, exactly once, when the engine
reports ``bestmove``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import chess

MATE_SENTINEL = 10000.0
DEFAULT_MULTIPV = 8

EngineProcess = Any
SendCommand = Callable[[EngineProcess, str], None]


@dataclass(frozen=True)
class CandidateMove:
    """A principal move and its evaluation in pawns, positive favouring White."""

    move: str
    evaluation: float


@dataclass(frozen=True)
class InfoLine:
    depth: int
    move: str
    score_cp: Optional[int] = None
    mate: Optional[int] = None
    multipv: int = 1

    def evaluation(self, side_to_move: chess.Color) -> float:
        if self.mate is not None:
            value = MATE_SENTINEL if self.mate > 0 else -MATE_SENTINEL
        else:
            value = (self.score_cp or 0) / 100
        return value if side_to_move == chess.WHITE else -value


@dataclass(frozen=True)
class BestMoveLine:
    move: Optional[str]


@dataclass(frozen=True)
class Unrecognized:
    line: str


EngineLine = Union[InfoLine, BestMoveLine, Unrecognized]


def classify_line(line: str) -> EngineLine:
    tokens = line.split()
    if not tokens:
        return Unrecognized(line)

    if tokens[0] == "bestmove":
        move = tokens[1] if len(tokens) > 1 and tokens[1] != "(none)" else None
        return BestMoveLine(move)

    if tokens[0] != "info" or (len(tokens) > 1 and tokens[1] == "string"):
        return Unrecognized(line)

    depth: Optional[int] = None
    multipv = 1
    score_cp: Optional[int] = None
    mate: Optional[int] = None
    move: Optional[str] = None
    iterator = iter(tokens[1:])
    try:
        for token in iterator:
            if token == "depth":
                depth = int(next(iterator))
            elif token == "multipv":
                multipv = int(next(iterator))
            elif token == "score":
                kind = next(iterator)
                value = int(next(iterator))
                if kind == "cp":
                    score_cp = value
                elif kind == "mate":
                    mate = value
            elif token == "pv":
                move = next(iterator)
                break
    except (StopIteration, ValueError):
        return Unrecognized(line)

    if depth is None or move is None or (score_cp is None and mate is None):
        return Unrecognized(line)
    return InfoLine(depth=depth, move=move, score_cp=score_cp, mate=mate, multipv=multipv)


class EngineSession:
    """Owns the single analysis conversation for the lifetime of the process."""

    def __init__(
        self,
        engine: EngineProcess,
        send_command: SendCommand,
        *,
        multipv: int = DEFAULT_MULTIPV,
        on_search_complete: Optional[Callable[[List[CandidateMove]], None]] = None,
    ) -> None:
        if multipv < 1:
            raise ValueError("multipv must be at least 1")
        self._engine = engine
        self._send_command = send_command
        self._multipv = multipv
        self.on_search_complete = on_search_complete

        # One slot per multipv index; a re-printed line replaces the earlier one.
        self._batch: Dict[int, CandidateMove] = {}
        self._searching = False
        self._target_depth: Optional[int] = None
        self._side_to_move: chess.Color = chess.WHITE

    @property
    def batch(self) -> Tuple[CandidateMove, ...]:
        return tuple(self._ordered_batch())

    @property
    def searching(self) -> bool:
        return self._searching

    @property
    def target_depth(self) -> Optional[int]:
        return self._target_depth

    def configure(self) -> None:
        self._dispatch(f"setoption name MultiPV value {self._multipv}")

    def new_game(self) -> None:
        self._dispatch("ucinewgame")

    def start_search(self, position: str, depth: int, side_to_move: chess.Color) -> None:
        self._batch = {}
        self._target_depth = depth
        self._side_to_move = side_to_move
        self._searching = True
        self._dispatch(f"position {position}")
        self._dispatch(f"go depth {depth}")

    def on_analysis_line(self, line: str) -> Optional[List[CandidateMove]]:
        """Feed one engine output line; returns the batch when it completes a search."""
        parsed = classify_line(line)

        if isinstance(parsed, InfoLine):
            if self._searching and parsed.depth == self._target_depth:
                self._batch[parsed.multipv] = CandidateMove(parsed.move, parsed.evaluation(self._side_to_move))
            return None

        if isinstance(parsed, BestMoveLine) and self._searching:
            batch = self._ordered_batch()
            self._batch = {}
            self._searching = False
            if self.on_search_complete is not None:
                self.on_search_complete(batch)
            return batch

        return None

    def _ordered_batch(self) -> List[CandidateMove]:
        return [self._batch[slot] for slot in sorted(self._batch)]

    def _dispatch(self, command: str) -> None:
        self._send_command(self._engine, command)
