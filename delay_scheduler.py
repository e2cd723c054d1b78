"""Human-paced release delays for selected moves."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Optional

from chess_logic import is_recapture
from game_state import GameState


@dataclass(frozen=True)
class DelayConfig:
    base_delay_ms: float = 200.0
    mean_delay_ms: float = 750.0
    trivial_batch_size: int = 2
    opening_last_move: int = 12
    opening_multiplier: float = 0.2
    midgame_last_move: int = 35
    midgame_multiplier: float = 1.0
    pause_probability: float = 0.1
    pause_ms: float = 1000.0

    def __post_init__(self) -> None:
        if self.mean_delay_ms <= 0:
            raise ValueError("mean_delay_ms must be positive")
        if self.base_delay_ms < 0 or self.pause_ms < 0:
            raise ValueError("Delays cannot be negative")

    @property
    def rate(self) -> float:
        return 1.0 / self.mean_delay_ms


DEFAULT_DELAY_CONFIG = DelayConfig()


def exponential_draw(rate: float, rng: random.Random) -> float:
    return -math.log(1.0 - rng.random()) / rate


def compute_delay(
    state: GameState,
    batch_size: int,
    *,
    pending_move: Optional[str] = None,
    config: DelayConfig = DEFAULT_DELAY_CONFIG,
    rng: Optional[random.Random] = None,
) -> float:
    """Milliseconds to hold a selected move before sending it."""
    if batch_size <= config.trivial_batch_size:
        return 0.0

    recent = list(state.recent_moves)
    if pending_move is not None:
        recent.append(pending_move)
    if is_recapture(recent):
        return 0.0

    move_number = state.move_number
    if move_number > config.midgame_last_move:
        return 0.0

    rng = rng or random
    draw = exponential_draw(config.rate, rng)
    if move_number <= config.opening_last_move:
        return config.base_delay_ms + draw * config.opening_multiplier

    if rng.random() < config.pause_probability:
        draw += config.pause_ms
    return config.base_delay_ms + draw * config.midgame_multiplier
