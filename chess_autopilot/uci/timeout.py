"""
Request Timeout Policy

Bounds a single best-move query in three phases:

    1. Deadline    think_time + grace from issue time; an answer before it
                   is returned immediately
    2. Soft stop   send 'stop' and wait a short drain window, because engines
                   usually answer 'stop' with their current best move
    3. Hard fail   raise EngineTimeout; the request is abandoned and the
                   session stays BUSY until the engine drains (or is restarted)

The retry wrapper repeats this sequentially, never in parallel: a session
serves one request at a time.
"""

import logging
import time
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Optional

from chess_autopilot.errors import EngineDied, EngineTimeout
from chess_autopilot.uci.session import SessionState, UciSession

logger = logging.getLogger(__name__)

MIN_GRACE_MS = 3000
MIN_DRAIN_MS = 500
DEFAULT_BACKOFF_MS = 300


class RequestTimeoutPolicy:
    """
    Deadline, stop-and-drain fallback, and bounded retry for best-move queries.

    Attributes:
        grace_ms: Extra time allowed beyond think time before sending 'stop'
        drain_ms: Time to wait for a late 'bestmove' after 'stop'
        retries: Number of attempts made by get_best_move_with_retry
        backoff_ms: Pause between attempts
    """

    def __init__(
        self,
        grace_ms: int = MIN_GRACE_MS,
        drain_ms: int = MIN_DRAIN_MS,
        retries: int = 2,
        backoff_ms: int = DEFAULT_BACKOFF_MS,
    ):
        """
        Initialize the policy.

        Raises:
            ValueError: If grace or drain are below their minimums, or
                retries is less than 1
        """
        if grace_ms < MIN_GRACE_MS:
            raise ValueError(f"grace_ms must be >= {MIN_GRACE_MS}, got {grace_ms}")
        if drain_ms < MIN_DRAIN_MS:
            raise ValueError(f"drain_ms must be >= {MIN_DRAIN_MS}, got {drain_ms}")
        if retries < 1:
            raise ValueError(f"retries must be >= 1, got {retries}")
        if backoff_ms < 0:
            raise ValueError(f"backoff_ms must be >= 0, got {backoff_ms}")

        self.grace_ms = grace_ms
        self.drain_ms = drain_ms
        self.retries = retries
        self.backoff_ms = backoff_ms

    def get_best_move(self, session: UciSession, position: str, think_time_ms: int) -> str:
        """
        Run one bounded best-move query.

        The drain window ends at the absolute instant
        issued_at + think_time + grace + drain, however late 'stop' was
        written. A silent engine therefore fails at that instant plus thread
        wake-up latency (normally a few milliseconds), and never earlier
        than think_time + grace.

        Args:
            session: READY session to query
            position: FEN string
            think_time_ms: Search time for 'go movetime'

        Returns:
            Best move token

        Raises:
            EngineTimeout: No answer within deadline + drain window
            EngineDied: Session faulted while waiting
            SessionNotReady: Session was not READY
        """
        pending = session.request_best_move(position, think_time_ms)
        pending.deadline = pending.issued_at + (think_time_ms + self.grace_ms) / 1000.0

        try:
            return pending.result(timeout=pending.remaining())
        except FutureTimeout:
            pass

        logger.warning(
            f"No bestmove within {think_time_ms + self.grace_ms}ms, sending stop "
            f"(drain {self.drain_ms}ms)"
        )
        session.stop_search()

        try:
            drain_deadline = pending.deadline + self.drain_ms / 1000.0
            return pending.result(timeout=max(0.0, drain_deadline - time.monotonic()))
        except FutureTimeout:
            pass

        if not session.abandon(pending):
            # Answered between the drain timeout and abandon()
            return pending.result()

        elapsed_ms = int((time.monotonic() - pending.issued_at) * 1000)
        raise EngineTimeout(f"Engine did not answer within {elapsed_ms}ms (stop sent)")

    def get_best_move_with_retry(
        self,
        session: UciSession,
        position: str,
        think_time_ms: int,
        retries: Optional[int] = None,
    ) -> str:
        """
        Run get_best_move up to `retries` times, sequentially.

        EngineDied is raised immediately, since a dead session cannot serve
        another attempt. If the engine is still busy with an abandoned search
        after the backoff, the last timeout is raised without further attempts.

        Args:
            session: READY session to query
            position: FEN string
            think_time_ms: Search time per attempt
            retries: Override for the configured attempt count

        Returns:
            Best move token

        Raises:
            EngineTimeout: Every attempt timed out
            EngineDied: Session faulted
        """
        attempts = retries if retries is not None else self.retries
        if attempts < 1:
            raise ValueError(f"retries must be >= 1, got {attempts}")

        for attempt in range(1, attempts + 1):
            try:
                return self.get_best_move(session, position, think_time_ms)
            except EngineDied:
                raise
            except EngineTimeout as e:
                if attempt == attempts:
                    raise

                logger.info(f"Attempt {attempt}/{attempts} failed ({e}), retrying")
                time.sleep(self.backoff_ms / 1000.0)

                if session.state is SessionState.BUSY:
                    logger.warning("Engine still busy with abandoned search, not retrying")
                    raise

        raise EngineTimeout(f"Failed after {attempts} attempts")

    def __repr__(self) -> str:
        return (
            f"RequestTimeoutPolicy(grace_ms={self.grace_ms}, drain_ms={self.drain_ms}, "
            f"retries={self.retries}, backoff_ms={self.backoff_ms})"
        )
