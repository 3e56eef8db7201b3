"""
Game Synchronization Loop

Paces engine requests against a live game that changes state on its own
schedule.

One iteration:
    1. Wait the poll interval (cancellable via stop())
    2. Fetch the board; no game → skip
    3. Not our turn, or same position as last time → skip (de-dup guard)
    4. Settle pause, then re-fetch; if it is no longer our turn → skip
    5. Remember the position, ask the engine (with timeout + retry)
    6. Success → play the move, reset the failure counter
    7. Failure (including an engine found dead since the last cycle) →
       count it, forget the position, restart the engine;
       give up after max_consecutive_failures in a row

The settle pause exists because a board read mid-animation can describe a
position that never existed. Re-reading after a short random delay filters
those transient states out.

Only this loop decides between "retry next cycle", "restart and continue" and
"give up". The layers below raise; they never decide.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import chess

from chess_autopilot.config import AutopilotConfig
from chess_autopilot.errors import (
    EngineDied,
    EngineTimeout,
    RestartFailed,
    SessionNotReady,
)
from chess_autopilot.sync.interfaces import BoardState, BoardStateProvider, MoveExecutor
from chess_autopilot.uci.session import SessionState
from chess_autopilot.uci.supervisor import RestartSupervisor
from chess_autopilot.uci.timeout import RequestTimeoutPolicy

logger = logging.getLogger(__name__)

WAITING_LOG_INTERVAL_S = 5.0


class IterationOutcome(Enum):
    """What a single loop iteration did."""
    NOT_READY = "not_ready"
    NOT_MY_TURN = "not_my_turn"
    DUPLICATE = "duplicate"
    STATE_CHANGED = "state_changed"
    MOVED = "moved"
    FAILED = "failed"
    GAVE_UP = "gave_up"
    STOPPED = "stopped"


@dataclass
class GameCycleState:
    """
    Loop-local memory between iterations.

    Attributes:
        last_position: Position most recently sent to the engine
        consecutive_failures: Failed cycles since the last successful move
    """
    last_position: Optional[str] = None
    consecutive_failures: int = 0


@dataclass
class LoopSummary:
    """Final statistics returned by SyncLoop.run()."""
    moves_played: int
    failures: int
    restarts: int
    reason: str


class SyncLoop:
    """
    Top-level control loop tying the board, the engine and the executor.

    Attributes:
        provider: Source of board snapshots
        executor: Plays chosen moves
        supervisor: Owns (and restarts) the engine session
        policy: Timeout and retry policy for move requests
        config: Loop pacing and failure budget
        cycle: GameCycleState of the running loop
    """

    def __init__(
        self,
        provider: BoardStateProvider,
        executor: MoveExecutor,
        supervisor: RestartSupervisor,
        policy: RequestTimeoutPolicy,
        config: Optional[AutopilotConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.provider = provider
        self.executor = executor
        self.supervisor = supervisor
        self.policy = policy
        self.config = config or AutopilotConfig()
        self.rng = rng or random.Random()

        self.cycle = GameCycleState()
        self.move_number = 0
        self.moves_played = 0
        self.failures = 0

        self._stop_event = threading.Event()
        self._last_seen_position: Optional[str] = None
        self._last_waiting_log = 0.0

    def run(self) -> LoopSummary:
        """
        Run until stop() is called or the failure budget is exhausted.

        Returns:
            LoopSummary with moves played, failures, restarts and stop reason
        """
        logger.info(f"Sync loop started (poll every {self.config.poll_interval_ms}ms)")
        reason = "stopped"

        while not self._stop_event.is_set():
            if self._wait(self.config.poll_interval_ms):
                break

            outcome = self.run_once()
            if outcome is IterationOutcome.GAVE_UP:
                reason = "too many consecutive failures"
                break

        summary = LoopSummary(
            moves_played=self.moves_played,
            failures=self.failures,
            restarts=self.supervisor.restart_count,
            reason=reason,
        )
        logger.info(
            f"Sync loop finished: {summary.moves_played} moves, {summary.failures} failures, "
            f"{summary.restarts} restarts ({summary.reason})"
        )
        return summary

    def run_once(self) -> IterationOutcome:
        """
        Execute one iteration (steps 2-7, without the poll wait).

        Returns:
            IterationOutcome describing what happened
        """
        state = self._fetch()
        if state is None:
            self._log_waiting()
            return IterationOutcome.NOT_READY

        if state.position != self._last_seen_position:
            self._last_seen_position = state.position
            logger.debug(
                f"Board detected: side={state.side_name} my_turn={state.is_my_turn}"
            )

        if not state.is_my_turn:
            return IterationOutcome.NOT_MY_TURN

        if state.position == self.cycle.last_position:
            return IterationOutcome.DUPLICATE

        if self.config.settle_enabled:
            state = self._settle()
            if state is None:
                if self._stop_event.is_set():
                    return IterationOutcome.STOPPED
                logger.info("Board changed while settling, skipping this cycle")
                return IterationOutcome.STATE_CHANGED

        self.cycle.last_position = state.position
        self.move_number += 1
        logger.info(f"Move {self.move_number}: our turn as {state.side_name}")
        logger.info(f"  FEN: {state.position}")

        # An engine that exited between cycles counts as a failed cycle
        if self._session_faulted():
            reason = self.supervisor.session.fault_reason
            return self._handle_failure(EngineDied(f"Engine died between moves: {reason}"))

        try:
            session = self.supervisor.ensure_alive()
            move = self.policy.get_best_move_with_retry(
                session, state.position, self.config.think_time_ms
            )
        except SessionNotReady as e:
            if self._session_faulted():
                return self._handle_failure(EngineDied(f"Engine died before the request: {e}"))
            return self._handle_failure(e)
        except (EngineTimeout, EngineDied, RestartFailed) as e:
            return self._handle_failure(e)

        logger.info(f"  Best move: {move}")
        self._play(move, state.side)
        self.cycle.consecutive_failures = 0
        return IterationOutcome.MOVED

    def stop(self):
        """Ask the loop to finish; interrupts any pause in progress."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def _session_faulted(self) -> bool:
        session = self.supervisor.session
        return session is not None and session.state is SessionState.FAULTED

    def _fetch(self) -> Optional[BoardState]:
        try:
            return self.provider.fetch()
        except Exception as e:
            logger.debug(f"Board read failed: {e}")
            return None

    def _settle(self) -> Optional[BoardState]:
        pause_ms = self.rng.randint(self.config.settle_min_ms, self.config.settle_max_ms)
        logger.info(f"Waiting {pause_ms / 1000:.1f}s for the board to settle")

        if self._wait(pause_ms):
            return None

        fresh = self._fetch()
        if fresh is None or not fresh.is_my_turn:
            return None
        return fresh

    def _play(self, move: str, side: chess.Color):
        try:
            ok = self.executor.apply(move, side)
        except Exception as e:
            logger.error(f"  Executor raised while playing {move}: {e}", exc_info=True)
            ok = False

        if ok:
            self.moves_played += 1
            logger.info(f"  Played {move}")
        else:
            # TODO: retry apply() within the cycle once executors can tell a
            # rejected drag from a slow board update.
            logger.warning(f"  Executor reported failure for {move}")

    def _handle_failure(self, error: Exception) -> IterationOutcome:
        self.failures += 1
        self.cycle.consecutive_failures += 1
        self.cycle.last_position = None

        count = self.cycle.consecutive_failures
        limit = self.config.max_consecutive_failures

        if isinstance(error, EngineTimeout):
            logger.warning(f"  Engine timeout ({count}/{limit}): {error}")
        elif isinstance(error, EngineDied):
            logger.warning(f"  Engine died ({count}/{limit}): {error}")
        elif isinstance(error, RestartFailed):
            logger.error(f"  Engine restart failed ({count}/{limit}): {error}")
        else:
            logger.warning(f"  Engine not ready ({count}/{limit}): {error}")

        if count >= limit:
            logger.error(
                f"Giving up after {count} consecutive failures "
                "(game probably over or engine unrecoverable)"
            )
            return IterationOutcome.GAVE_UP

        # Let the board finish updating before the next read
        if self._wait(self.config.failure_pause_ms):
            return IterationOutcome.STOPPED

        try:
            self.supervisor.restart(reason=type(error).__name__)
        except RestartFailed as e:
            self.failures += 1
            self.cycle.consecutive_failures += 1
            logger.error(
                f"  Engine restart failed ({self.cycle.consecutive_failures}/{limit}): {e}"
            )
            if self.cycle.consecutive_failures >= limit:
                logger.error("Giving up: engine cannot be restarted")
                return IterationOutcome.GAVE_UP

        self.cycle.last_position = None
        return IterationOutcome.FAILED

    def _log_waiting(self):
        now = time.monotonic()
        if now - self._last_waiting_log >= WAITING_LOG_INTERVAL_S:
            self._last_waiting_log = now
            logger.info("Waiting for a game board...")

    def _wait(self, milliseconds: int) -> bool:
        """Sleep cooperatively; returns True if stop() was requested."""
        if milliseconds <= 0:
            return self._stop_event.is_set()
        return self._stop_event.wait(milliseconds / 1000.0)
