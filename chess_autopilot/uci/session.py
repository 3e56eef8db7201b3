"""
UCI Session

Client-side state machine for one engine process.

State Machine:
    UNINITIALIZED --start()--> HANDSHAKING   (send 'uci')
    HANDSHAKING   --uciok----> HANDSHAKING   (send 'isready')
    HANDSHAKING   --readyok--> READY         (start() returns)
    READY         --request--> BUSY          (send 'position ...', 'go movetime N')
    BUSY          --bestmove-> READY         (resolve pending request)
    any live      --EOF/write failure--> FAULTED  (reject pending with EngineDied)
    any           --quit()---> TERMINATED

Request Correlation:
    The protocol carries no request identifier, so a 'bestmove' line can only
    be matched to "whatever request is pending". The session therefore keeps
    a single pending slot and rejects a second request instead of queueing it.
    A request abandoned after a timeout keeps the slot (and the BUSY state)
    until the engine's late 'bestmove' arrives; that line is swallowed so it
    can never be mistaken for the answer to a newer request.

Threading:
    - One reader thread per session consumes transport lines in output order
    - All state transitions happen under a single re-entrant lock
    - Callers block on PendingRequest futures, never on the reader
"""

import logging
import threading
import time
from concurrent.futures import Future
from enum import Enum
from typing import Callable, Optional, Sequence

from chess_autopilot.errors import (
    EngineDied,
    EngineTimeout,
    HandshakeTimeout,
    SessionNotReady,
    SpawnError,
)
from chess_autopilot.uci.protocol import (
    LineKind,
    clamp_strength,
    go_movetime_command,
    parse_line,
    position_command,
    strength_command,
)
from chess_autopilot.uci.transport import LineTransport

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle state of a UciSession."""
    UNINITIALIZED = 0
    HANDSHAKING = 1
    READY = 2
    BUSY = 3
    FAULTED = 4
    TERMINATED = 5


LIVE_STATES = (SessionState.HANDSHAKING, SessionState.READY, SessionState.BUSY)


class PendingRequest:
    """
    The single outstanding best-move query of a session.

    Attributes:
        position: Position string sent to the engine
        think_time_ms: Requested search time
        issued_at: time.monotonic() when the request was issued
        deadline: Absolute monotonic deadline, set by the timeout policy
        abandoned: True once the caller gave up waiting
    """

    def __init__(self, position: str, think_time_ms: int):
        self.position = position
        self.think_time_ms = think_time_ms
        self.issued_at = time.monotonic()
        self.deadline: Optional[float] = None
        self.abandoned = False
        self._future: Future = Future()

    def resolve(self, move: str) -> bool:
        if self._future.done():
            return False
        self._future.set_result(move)
        return True

    def reject(self, error: Exception) -> bool:
        if self._future.done():
            return False
        self._future.set_exception(error)
        return True

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> str:
        """
        Block until the engine answers.

        Args:
            timeout: Seconds to wait (None = forever)

        Returns:
            Best move token, e.g. "e2e4"

        Raises:
            concurrent.futures.TimeoutError: If no answer within timeout
            EngineDied: If the session faulted while waiting
        """
        return self._future.result(timeout)

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline (None if no deadline is set)."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def __repr__(self) -> str:
        status = "abandoned" if self.abandoned else ("done" if self.done() else "pending")
        return f"PendingRequest(movetime={self.think_time_ms}, {status})"


class UciSession:
    """
    Typed request/response API over one UCI engine process.

    Attributes:
        command: argv used to launch the engine
        state: Current SessionState
        strength: Last configured skill level (None = engine default)

    Methods:
        start: Spawn the engine and complete the handshake
        set_strength: Configure skill level (fire-and-forget)
        request_best_move: Issue a 'go movetime' query
        stop_search: Ask the engine to stop the current search
        abandon: Give up on a pending request after a timeout
        quit: Shut down the engine
    """

    def __init__(
        self,
        command: Sequence[str],
        transport_factory: Optional[Callable[[Sequence[str]], LineTransport]] = None,
    ):
        """
        Initialize a session. Nothing is spawned until start().

        Args:
            command: Engine argv, e.g. ["stockfish"]
            transport_factory: Builds the transport (default: LineTransport)
        """
        self.command = list(command)
        self._transport_factory = transport_factory or LineTransport

        self._lock = threading.RLock()
        self._handshake_done = threading.Event()
        self._state = SessionState.UNINITIALIZED
        self._transport = None
        self._reader: Optional[threading.Thread] = None
        self._pending: Optional[PendingRequest] = None
        self._uciok_seen = False

        self._strength: Optional[int] = None
        self._strength_dirty = False
        self._fault_reason: Optional[str] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, handshake_timeout: Optional[float] = None):
        """
        Spawn the engine and run the uci/isready handshake.

        Returns only after both 'uciok' and 'readyok' were received, in that
        order.

        Args:
            handshake_timeout: Seconds to wait for the handshake (None = forever)

        Raises:
            SessionNotReady: If start() was already called on this session
            SpawnError: If the engine cannot be launched
            EngineDied: If the engine exits during the handshake
            HandshakeTimeout: If the handshake does not finish in time
        """
        with self._lock:
            if self._state is not SessionState.UNINITIALIZED:
                raise SessionNotReady(f"start() called in state {self._state.name}")

            self._transport = self._transport_factory(self.command)
            try:
                self._transport.start()
            except SpawnError:
                self._state = SessionState.FAULTED
                raise

            self._state = SessionState.HANDSHAKING
            self._reader = threading.Thread(
                target=self._read_loop,
                name=f"uci-reader-{self._transport.pid}",
                daemon=True,
            )
            self._reader.start()
            self._send("uci")

        completed = self._handshake_done.wait(handshake_timeout)

        with self._lock:
            state = self._state
            if state is SessionState.READY:
                logger.info("Engine handshake complete, session ready")
                return

            if not completed:
                self._state = SessionState.FAULTED
                self._fault_reason = "handshake timed out"
                transport = self._transport
            else:
                transport = None

        if transport is not None:
            transport.stop()
            raise HandshakeTimeout(
                f"Engine did not complete handshake within {handshake_timeout:.1f}s"
            )

        if state is SessionState.TERMINATED:
            raise EngineDied("Session terminated during handshake")
        raise EngineDied(f"Engine died during handshake: {self._fault_reason}")

    def set_strength(self, level: int) -> int:
        """
        Configure the engine's skill level.

        The level is clamped to [0, 20]. The engine does not acknowledge the
        option. If the session is not READY the level is remembered and sent as
        soon as it is.

        Args:
            level: Requested skill level

        Returns:
            The clamped level
        """
        level = clamp_strength(level)
        with self._lock:
            self._strength = level
            self._strength_dirty = True
            if self._state is SessionState.READY:
                self._apply_strength()
        logger.info(f"Engine strength set to {level}")
        return level

    def request_best_move(self, position: str, think_time_ms: int) -> PendingRequest:
        """
        Ask the engine for the best move in a position.

        Args:
            position: FEN string (or 'startpos')
            think_time_ms: Search time passed as 'go movetime'

        Returns:
            PendingRequest whose result() yields the move token

        Raises:
            SessionNotReady: If the session is not READY (including BUSY)
            ValueError: If think_time_ms is not positive
        """
        if think_time_ms <= 0:
            raise ValueError(f"think_time_ms must be positive, got {think_time_ms}")

        with self._lock:
            if self._state is not SessionState.READY:
                raise SessionNotReady(
                    f"Cannot request a move while session is {self._state.name}"
                )

            pending = PendingRequest(position, think_time_ms)
            self._pending = pending
            self._state = SessionState.BUSY

            if self._send(position_command(position)):
                self._send(go_movetime_command(think_time_ms))

        return pending

    def stop_search(self) -> bool:
        """Send 'stop' if a search is running. Returns True if it was sent."""
        with self._lock:
            if self._state is not SessionState.BUSY:
                return False
            return self._send("stop")

    def abandon(self, pending: PendingRequest) -> bool:
        """
        Give up on a request whose deadline and drain window have passed.

        The session stays BUSY until the engine's late 'bestmove' arrives, and
        that line is then discarded.

        Args:
            pending: The request to abandon

        Returns:
            False if the request had already been resolved (nothing abandoned)
        """
        with self._lock:
            if pending.done():
                return False
            pending.abandoned = True
            pending.reject(EngineTimeout("Request abandoned after timeout"))
        logger.debug(f"Abandoned {pending!r}")
        return True

    def new_game(self) -> bool:
        """Send 'ucinewgame' (READY only). Returns True if it was sent."""
        with self._lock:
            if self._state is not SessionState.READY:
                return False
            return self._send("ucinewgame")

    def quit(self, timeout: float = 1.0):
        """
        Shut the engine down. Idempotent.

        The engine never acknowledges 'quit', so the process is always
        terminated afterwards.

        Args:
            timeout: Seconds to wait for the reader thread to finish
        """
        with self._lock:
            if self._state is SessionState.TERMINATED:
                return
            previous = self._state
            self._state = SessionState.TERMINATED
            pending, self._pending = self._pending, None
            transport = self._transport
            self._handshake_done.set()

        if pending is not None:
            pending.reject(EngineDied("Session terminated"))

        if transport is not None:
            transport.send_line("quit")
            transport.stop()

        reader = self._reader
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout)

        logger.info(f"Session terminated (was {previous.name})")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def strength(self) -> Optional[int]:
        return self._strength

    @property
    def pending(self) -> Optional[PendingRequest]:
        return self._pending

    @property
    def transport(self):
        return self._transport

    @property
    def is_alive(self) -> bool:
        return self._state in LIVE_STATES

    @property
    def fault_reason(self) -> Optional[str]:
        return self._fault_reason

    # ------------------------------------------------------------------
    # Line dispatch (reader thread)
    # ------------------------------------------------------------------

    def _read_loop(self):
        transport = self._transport
        try:
            for line in transport.read_lines():
                logger.debug(f"<<< {line}")
                self._handle_line(line)
        except Exception as e:
            logger.error(f"Engine reader failed: {e}", exc_info=True)
        finally:
            self._on_output_closed()

    def _handle_line(self, line: str):
        parsed = parse_line(line)
        if parsed.kind is LineKind.OTHER:
            return

        with self._lock:
            if parsed.kind is LineKind.UCIOK:
                if self._state is SessionState.HANDSHAKING:
                    self._uciok_seen = True
                    self._send("isready")
                else:
                    logger.debug(f"Ignoring uciok in state {self._state.name}")

            elif parsed.kind is LineKind.READYOK:
                if self._state is SessionState.HANDSHAKING and self._uciok_seen:
                    self._become_ready()
                    self._handshake_done.set()
                else:
                    logger.debug(f"Ignoring readyok in state {self._state.name}")

            elif parsed.kind is LineKind.BESTMOVE:
                pending = self._pending
                if self._state is not SessionState.BUSY or pending is None:
                    logger.debug(f"Ignoring stray bestmove {parsed.move}")
                    return

                self._pending = None
                self._become_ready()

                if pending.abandoned:
                    logger.info(f"Discarded late bestmove {parsed.move} for abandoned request")
                else:
                    pending.resolve(parsed.move)

    def _on_output_closed(self):
        with self._lock:
            if self._state is SessionState.TERMINATED:
                logger.debug("Engine output closed after quit")
                return
            returncode = self._transport.returncode if self._transport else None
            self._fault(f"engine output closed (returncode={returncode})")

    # ------------------------------------------------------------------
    # Helpers (call with lock held)
    # ------------------------------------------------------------------

    def _send(self, text: str) -> bool:
        if self._transport.send_line(text):
            return True
        self._fault(f"write failed: {text}")
        return False

    def _become_ready(self):
        self._state = SessionState.READY
        if self._strength_dirty:
            self._apply_strength()

    def _apply_strength(self):
        self._strength_dirty = False
        self._send(strength_command(self._strength))

    def _fault(self, reason: str):
        if self._state in (SessionState.FAULTED, SessionState.TERMINATED):
            return

        logger.warning(f"Session faulted in state {self._state.name}: {reason}")
        self._state = SessionState.FAULTED
        self._fault_reason = reason

        pending, self._pending = self._pending, None
        if pending is not None:
            pending.reject(EngineDied(reason))

        self._handshake_done.set()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.quit()

    def __repr__(self) -> str:
        return f"UciSession(cmd={self.command[0]!r}, state={self._state.name})"
