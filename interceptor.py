"""Per-game orchestration between the game transport and the engine session."""

from __future__ import annotations

import json
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

import chess

from delay_scheduler import DEFAULT_DELAY_CONFIG, DelayConfig, compute_delay
from engine_session import CandidateMove, EngineSession
from game_state import GameState, side_to_move_after
from policy import Selection, engine_depth, select_move, target_evaluation
from utils import ReportingLevel, debug_text, info_text, move_text

MOVE_FLAGS = {"b": 1, "l": 100, "a": 1, "s": 0}

Schedule = Callable[[int, Callable[[], None]], None]


class MalformedEventError(ValueError):
    """Raised when an inbound transport frame cannot be interpreted."""


class InterceptorState(Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    RELEASING = "releasing"
    FINISHED = "finished"


class Transport(Protocol):
    def send(self, text: str) -> None:
        ...

    def is_open(self) -> bool:
        ...


@dataclass(frozen=True)
class GameResult:
    winner: Optional[chess.Color]
    status: str
    white_clock: Optional[float] = None
    black_clock: Optional[float] = None

    def score_for(self, color: chess.Color) -> float:
        if self.winner is None:
            return 0.5
        return 1.0 if self.winner == color else 0.0

    def describe(self) -> str:
        winner = "draw" if self.winner is None else ("white" if self.winner == chess.WHITE else "black")
        return f"{winner} ({self.status})"


def build_move_message(move: str) -> str:
    return json.dumps({"t": "move", "d": {"u": move, **MOVE_FLAGS}})


def parse_game_result(payload: Any) -> GameResult:
    if not isinstance(payload, dict):
        raise MalformedEventError("endData payload is not an object")
    winner_name = payload.get("winner")
    if winner_name not in (None, "white", "black"):
        raise MalformedEventError(f"Unknown winner: {winner_name!r}")
    winner = None if winner_name is None else winner_name == "white"

    status = payload.get("status")
    if isinstance(status, dict):
        status = status.get("name")
    clock = payload.get("clock") or {}
    return GameResult(
        winner=winner,
        status=str(status) if status is not None else "unknown",
        white_clock=clock.get("wc") if isinstance(clock, dict) else None,
        black_clock=clock.get("bc") if isinstance(clock, dict) else None,
    )


class TransportInterceptor:
    """Turns transport move events into engine searches and delayed replies.

    One instance serves exactly one game. A game-end event is terminal; the
    next game gets a fresh interceptor and ``GameState``.
    """

    def __init__(
        self,
        transport: Optional[Transport],
        session: EngineSession,
        state: GameState,
        *,
        schedule: Schedule,
        rng: Optional[random.Random] = None,
        delay_config: DelayConfig = DEFAULT_DELAY_CONFIG,
        reporting_level: ReportingLevel = ReportingLevel.BASIC,
        on_game_end: Optional[Callable[[GameResult], None]] = None,
    ) -> None:
        self._transport = transport
        self._session = session
        self._state = state
        self._schedule = schedule
        self._rng = rng or random.Random()
        self._delay_config = delay_config
        self._reporting_level = reporting_level
        self._on_game_end = on_game_end

        self._status = InterceptorState.IDLE
        self._result: Optional[GameResult] = None
        self._release_pending = False
        self._handlers: Dict[str, Callable[[Any], None]] = {
            "move": self.handle_move_event,
            "endData": self.handle_game_end,
        }
        session.on_search_complete = self.on_search_complete

    @property
    def status(self) -> InterceptorState:
        return self._status

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def result(self) -> Optional[GameResult]:
        return self._result

    def begin(self) -> None:
        """Start the game; White moves first without waiting for an event."""
        if self._state.bot_color is None:
            raise RuntimeError("Bot color must be known before the game begins")
        self._session.new_game()
        if self._state.ply_count == 0 and self._state.is_bot_turn():
            self._request_search()

    def on_transport_message(self, raw: str) -> None:
        try:
            message = json.loads(raw)
            if not isinstance(message, dict):
                raise MalformedEventError("Frame is not an object")
            kind = message.get("t")
            handler = self._handlers.get(kind) if isinstance(kind, str) else None
            if handler is None:
                return
            handler(message.get("d"))
        except (json.JSONDecodeError, MalformedEventError) as exc:
            self._report(debug_text(f"Dropped transport frame: {exc}"), ReportingLevel.BASIC)

    def handle_move_event(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            raise MalformedEventError("move payload is not an object")
        ply = payload.get("ply")
        if not isinstance(ply, int) or isinstance(ply, bool) or ply < 0:
            raise MalformedEventError(f"Invalid ply: {ply!r}")
        uci, fen = payload.get("uci"), payload.get("fen")
        if not isinstance(uci, (str, type(None))) or not isinstance(fen, (str, type(None))):
            raise MalformedEventError("move and board must be strings")

        state = self._state
        if state.bot_color is None or self._status is not InterceptorState.IDLE:
            self._report(
                debug_text(f"Ignoring move event at ply {ply} while {self._status.value}"),
                ReportingLevel.VERBOSE,
            )
            return
        # Our own echoed moves and replays of earlier plies are not our turn to answer.
        if side_to_move_after(ply) != state.bot_color or ply <= state.ply_count:
            return

        try:
            state.apply_inbound_move(ply, uci, fen)
        except ValueError as exc:
            raise MalformedEventError(str(exc)) from exc
        self._request_search()

    def handle_game_end(self, payload: Any) -> None:
        if self._status is InterceptorState.FINISHED:
            return
        result = parse_game_result(payload)
        self._status = InterceptorState.FINISHED
        self._result = result
        self._report(info_text(f"Game over: {result.describe()}"), ReportingLevel.BASIC)
        # A move already scheduled is released before the game is reported as over.
        if not self._release_pending:
            self._notify_game_end()

    def on_search_complete(self, batch: List[CandidateMove]) -> None:
        if self._status is not InterceptorState.SEARCHING:
            return

        target = self.target()
        selection = select_move(batch, target)
        if selection is None:
            self._status = InterceptorState.IDLE
            self._report(debug_text("Search finished without candidates; no move sent"), ReportingLevel.BASIC)
            return

        self._state.current_eval = selection.evaluation
        delay = compute_delay(
            self._state,
            selection.batch_size,
            pending_move=selection.move,
            config=self._delay_config,
            rng=self._rng,
        )
        self._report(info_text(f"Status: {self.status_line()}"), ReportingLevel.VERBOSE)
        self._status = InterceptorState.RELEASING
        self._release_pending = True
        self._schedule(int(delay), lambda: self._release(selection, target, delay))

    def target(self) -> float:
        return target_evaluation(self._state.move_number, self._state.bot_color)

    def status_line(self) -> str:
        """Evaluation and target from the bot's side, as the status panel shows them."""
        sign = 1 if self._state.bot_color != chess.BLACK else -1
        evaluation = sign * self._state.current_eval
        target = sign * self.target() if self._state.bot_color is not None else 0.0
        return f"{evaluation:.2f} (Target {target:.2f})"

    def _request_search(self) -> None:
        state = self._state
        self._status = InterceptorState.SEARCHING
        self._session.start_search(
            state.position_command(),
            engine_depth(state.move_number),
            state.side_to_move,
        )

    def _release(self, selection: Selection, target: float, delay: float) -> None:
        self._release_pending = False
        transport = self._transport
        if transport is None or not transport.is_open():
            self._report(debug_text(f"Transport closed; {selection.move} not sent"), ReportingLevel.VERBOSE)
            self._finish_release()
            return

        state = self._state
        sign = 1 if state.bot_color == chess.WHITE else -1
        separator = "." if state.bot_color == chess.WHITE else "..."
        self._report(
            move_text(
                f"{state.move_number}{separator} {selection.move}: "
                f"{sign * selection.evaluation:.2f} (target {sign * target:.2f}) ({int(delay)} ms)"
            ),
            ReportingLevel.BASIC,
        )
        transport.send(build_move_message(selection.move))
        state.apply_own_move(selection.move)
        self._finish_release()

    def _finish_release(self) -> None:
        if self._status is InterceptorState.RELEASING:
            self._status = InterceptorState.IDLE
        elif self._status is InterceptorState.FINISHED:
            self._notify_game_end()

    def _notify_game_end(self) -> None:
        if self._on_game_end is not None and self._result is not None:
            self._on_game_end(self._result)

    def _report(self, message: str, level: ReportingLevel) -> None:
        if self._reporting_level >= level:
            print(message)
