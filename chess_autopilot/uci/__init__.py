"""
UCI Engine Session

This package drives an external UCI engine (e.g. Stockfish) over its
standard input/output.

Protocol Flow:
    Client → "uci"
    Engine → "id name Stockfish 16"
    Engine → "uciok"
    Client → "isready"
    Engine → "readyok"
    Client → "setoption name Skill Level value 20"
    Client → "position fen rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
    Client → "go movetime 500"
    Engine → "info depth 12 score cp -25 pv e7e5 ..."
    Engine → "bestmove e7e5 ponder g1f3"

Layers:
    LineTransport           subprocess + byte stream → lines
    UciSession              handshake, state machine, single pending request
    RequestTimeoutPolicy    deadline, stop-and-drain, bounded retry
    RestartSupervisor       fresh session after faults, strength preserved

Reference:
    UCI Protocol: https://www.chessprogramming.org/UCI
"""

from chess_autopilot.uci.session import PendingRequest, SessionState, UciSession
from chess_autopilot.uci.supervisor import RestartSupervisor
from chess_autopilot.uci.timeout import RequestTimeoutPolicy
from chess_autopilot.uci.transport import LineBuffer, LineTransport

__all__ = [
    'LineBuffer',
    'LineTransport',
    'PendingRequest',
    'RequestTimeoutPolicy',
    'RestartSupervisor',
    'SessionState',
    'UciSession',
]
