"""
Restart Supervisor

Keeps a usable UciSession available to the sync loop.

A restart never mutates a session in place. It builds a brand-new session,
runs its handshake, re-applies the configured strength, and only then swaps
the reference callers read from `supervisor.session`. A caller therefore sees
either the old session or a fully started new one, never a half-started one.

The supervisor makes exactly one attempt per restart() call. Whether to keep
trying is the sync loop's decision (via its consecutive-failure budget).
"""

import logging
import threading
from typing import Callable, Optional, Sequence

from chess_autopilot.errors import EngineDied, EngineTimeout, RestartFailed, SpawnError
from chess_autopilot.uci.protocol import clamp_strength
from chess_autopilot.uci.session import SessionState, UciSession

logger = logging.getLogger(__name__)


class RestartSupervisor:
    """
    Owns the current engine session and rebuilds it after faults.

    Attributes:
        command: Engine argv passed to every new session
        handshake_timeout: Seconds allowed for each handshake (None = forever)
        restart_count: Number of successful restarts so far
    """

    def __init__(
        self,
        command: Sequence[str],
        handshake_timeout: Optional[float] = None,
        session_factory: Optional[Callable[[Sequence[str]], UciSession]] = None,
    ):
        """
        Initialize the supervisor. No engine is spawned until start().

        Args:
            command: Engine argv, e.g. ["stockfish"]
            handshake_timeout: Seconds allowed for each handshake
            session_factory: Builds sessions (default: UciSession)
        """
        self.command = list(command)
        self.handshake_timeout = handshake_timeout
        self._session_factory = session_factory or UciSession

        self._lock = threading.Lock()
        self._session: Optional[UciSession] = None
        self._strength: Optional[int] = None
        self.restart_count = 0

    def start(self) -> UciSession:
        """
        Build and start the first session.

        Startup failures are surfaced as-is (SpawnError is fatal for the whole
        program, so it is not wrapped in RestartFailed here).

        Returns:
            The READY session

        Raises:
            SpawnError, EngineDied, HandshakeTimeout: From the handshake
        """
        session = self._build_session()
        with self._lock:
            self._session = session
        return session

    def set_strength(self, level: int) -> int:
        """
        Record the skill level and apply it to the current session.

        The level is re-applied automatically after every restart.

        Returns:
            The clamped level
        """
        self._strength = clamp_strength(level)
        session = self._session
        if session is not None and session.is_alive:
            session.set_strength(self._strength)
        return self._strength

    def ensure_alive(self) -> UciSession:
        """
        Return the current session, restarting first if it has faulted.

        Raises:
            RestartFailed: If a needed restart fails
        """
        session = self._session
        if session is None or session.state in (SessionState.FAULTED, SessionState.TERMINATED):
            reason = session.fault_reason if session is not None else "no session"
            return self.restart(reason or "session not alive")
        return session

    def restart(self, reason: str = "requested") -> UciSession:
        """
        Tear down the current session and replace it with a fresh one.

        Args:
            reason: Why the restart happened (for logs)

        Returns:
            The new READY session

        Raises:
            RestartFailed: If the new session cannot be started
        """
        logger.info(f"Restarting engine session ({reason})")

        old = self._session
        if old is not None:
            old.quit()

        try:
            session = self._build_session()
        except (SpawnError, EngineDied, EngineTimeout) as e:
            logger.error(f"Engine restart failed: {e}")
            raise RestartFailed(f"Engine restart failed: {e}") from e

        with self._lock:
            self._session = session
            self.restart_count += 1

        logger.info(f"Engine restarted (restart #{self.restart_count})")
        return session

    def shutdown(self):
        """Quit the current session, if any."""
        with self._lock:
            session, self._session = self._session, None
        if session is not None:
            session.quit()

    @property
    def session(self) -> Optional[UciSession]:
        return self._session

    @property
    def strength(self) -> Optional[int]:
        return self._strength

    def _build_session(self) -> UciSession:
        session = self._session_factory(self.command)
        try:
            session.start(handshake_timeout=self.handshake_timeout)
        except Exception:
            session.quit()
            raise

        if self._strength is not None:
            session.set_strength(self._strength)
        return session

    def __repr__(self) -> str:
        return (
            f"RestartSupervisor(cmd={self.command[0]!r}, session={self._session!r}, "
            f"restarts={self.restart_count})"
        )
