from dataclasses import dataclass
from typing import Optional, Sequence

import chess

from engine_session import CandidateMove

LATE_GAME_DEPTH_MOVE = 30
DEFAULT_DEPTH = 10
LATE_GAME_DEPTH = 8

TARGET_CUBIC_COEFFICIENT = 0.000075
TARGET_OFFSET = 0.5


@dataclass(frozen=True)
class Selection:
    move: str
    evaluation: float
    batch_size: int


def engine_depth(move_number: int) -> int:
    # Shallower searches late in the game keep the clock in check.
    if move_number <= LATE_GAME_DEPTH_MOVE:
        return DEFAULT_DEPTH
    return LATE_GAME_DEPTH


def target_evaluation(move_number: int, bot_color: chess.Color) -> float:
    """Evaluation (pawns, positive favours White) the bot steers towards.

    The bot's intended advantage grows with the cube of the move number, so
    games drift from near-equal openings to comfortable endgames.
    """
    magnitude = max(0.0, TARGET_CUBIC_COEFFICIENT * move_number ** 3) + TARGET_OFFSET
    return magnitude if bot_color == chess.WHITE else -magnitude


def select_move(batch: Sequence[CandidateMove], target: float) -> Optional[Selection]:
    closest: Optional[CandidateMove] = None
    smallest_difference = float("inf")
    for candidate in batch:
        difference = abs(candidate.evaluation - target)
        if difference < smallest_difference:
            closest = candidate
            smallest_difference = difference

    if closest is None:
        return None
    return Selection(closest.move, closest.evaluation, len(batch))
