"""
Test doubles shared by the test modules.
"""

import queue
import sys
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

from chess_autopilot.sync.interfaces import BoardState, BoardStateProvider, MoveExecutor
from chess_autopilot.uci.session import PendingRequest, SessionState

FAKE_ENGINE = str(Path(__file__).parent / "fake_engine.py")

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
AFTER_E4_FEN = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


def fake_engine_command(mode: str, *extra: str) -> List[str]:
    """argv launching tests/fake_engine.py in the given mode."""
    return [sys.executable, FAKE_ENGINE, mode, *extra]


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll predicate until it is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def handshake_responses(bestmove: Optional[str] = "e2e4") -> Dict[str, List[str]]:
    """Responses of a well-behaved engine, keyed by command keyword."""
    responses = {
        "uci": ["id name FakeEngine", "id author tests", "uciok"],
        "isready": ["readyok"],
    }
    if bestmove is not None:
        responses["go"] = [
            "info depth 8 score cp 31 nodes 1200 pv " + bestmove,
            f"bestmove {bestmove} ponder e7e5",
        ]
    return responses


class FakeTransport:
    """
    In-memory stand-in for LineTransport.

    Commands are recorded in `sent`; `responses` maps a command keyword
    (first word) to lines the "engine" emits in reply.
    """

    def __init__(self, command=None, responses: Optional[Dict[str, List[str]]] = None):
        self.command = list(command or ["fake"])
        self.responses = responses if responses is not None else handshake_responses()
        self.sent: List[str] = []
        self.start_error: Optional[Exception] = None
        self.alive = False
        self.stopped = False
        self._lines: "queue.Queue[Optional[str]]" = queue.Queue()

    def start(self):
        if self.start_error is not None:
            raise self.start_error
        self.alive = True

    def read_lines(self):
        while True:
            line = self._lines.get()
            if line is None:
                return
            yield line

    def send_line(self, text: str) -> bool:
        if not self.alive:
            return False
        self.sent.append(text)
        keyword = text.split()[0]
        for line in self.responses.get(keyword, []):
            self._lines.put(line)
        return True

    def push(self, *lines: str):
        """Emit lines as if the engine printed them."""
        for line in lines:
            self._lines.put(line)

    def close(self):
        """Simulate the engine exiting (end of output)."""
        self.alive = False
        self._lines.put(None)

    def stop(self):
        if self.stopped:
            return
        self.stopped = True
        self.close()

    @property
    def is_alive(self) -> bool:
        return self.alive

    @property
    def returncode(self) -> Optional[int]:
        return None if self.alive else 0

    @property
    def pid(self) -> int:
        return 4242


class StubSession:
    """
    Session double whose requests resolve instantly from a script.

    Each outcome is either a move string or an exception instance.
    """

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.state = SessionState.READY
        self.fault_reason: Optional[str] = None
        self.requests: List[str] = []
        self.stops = 0

    def request_best_move(self, position: str, think_time_ms: int) -> PendingRequest:
        self.requests.append(position)
        pending = PendingRequest(position, think_time_ms)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            pending.reject(outcome)
        else:
            pending.resolve(outcome)
        return pending

    def stop_search(self) -> bool:
        self.stops += 1
        return True

    def abandon(self, pending: PendingRequest) -> bool:
        return not pending.done()


class ScriptedProvider(BoardStateProvider):
    """Returns the scripted states in order, then repeats the last one."""

    def __init__(self, states):
        self.states = list(states)
        self.calls = 0

    def fetch(self) -> Optional[BoardState]:
        self.calls += 1
        if len(self.states) > 1:
            state = self.states.pop(0)
        else:
            state = self.states[0]
        if isinstance(state, Exception):
            raise state
        return state


class RecordingExecutor(MoveExecutor):
    def __init__(self, result: bool = True):
        self.result = result
        self.applied = []

    def apply(self, move, side) -> bool:
        self.applied.append((move, side))
        return self.result
