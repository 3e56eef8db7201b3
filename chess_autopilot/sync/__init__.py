"""
Game synchronization: the loop plus the interfaces it talks to.
"""

from chess_autopilot.sync.adapters import (
    FenFileProvider,
    LoggingMoveExecutor,
    MoveSquares,
    move_to_squares,
    parse_side,
)
from chess_autopilot.sync.interfaces import BoardState, BoardStateProvider, MoveExecutor
from chess_autopilot.sync.loop import GameCycleState, IterationOutcome, LoopSummary, SyncLoop

__all__ = [
    'BoardState',
    'BoardStateProvider',
    'FenFileProvider',
    'GameCycleState',
    'IterationOutcome',
    'LoggingMoveExecutor',
    'LoopSummary',
    'MoveExecutor',
    'MoveSquares',
    'SyncLoop',
    'move_to_squares',
    'parse_side',
]
