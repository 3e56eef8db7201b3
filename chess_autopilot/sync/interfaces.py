"""
Game Surface Interfaces

The sync loop never looks at the game itself. It reads positions through a
BoardStateProvider and plays moves through a MoveExecutor, so the same loop
can drive a browser board, a physical board, or a test double.

Data Flow:
    provider.fetch() → BoardState(position, is_my_turn, side)
                     → engine bestmove "e2e4"
                     → executor.apply("e2e4", side)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import chess


@dataclass(frozen=True)
class BoardState:
    """
    Snapshot of the live game as seen by the provider.

    Attributes:
        position: Full FEN (board, side to move, castling, en passant, counters)
        is_my_turn: True if the side we play is to move
        side: Color we play (chess.WHITE or chess.BLACK)
    """
    position: str
    is_my_turn: bool
    side: chess.Color

    @property
    def side_name(self) -> str:
        return chess.COLOR_NAMES[self.side]


class BoardStateProvider(ABC):
    """
    Source of game snapshots.

    fetch() must be cheap, repeatable and free of side effects: the loop
    calls it every poll interval and again after the settle pause.
    """

    @abstractmethod
    def fetch(self) -> Optional[BoardState]:
        """
        Read the current game state.

        Returns:
            BoardState, or None when no active game is detected
        """
        pass


class MoveExecutor(ABC):
    """Plays a move on the live game surface."""

    @abstractmethod
    def apply(self, move: str, side: chess.Color) -> bool:
        """
        Perform a move.

        Args:
            move: UCI token, from + to + optional promotion ("e7e8q")
            side: Color making the move

        Returns:
            True if the executor believes the move was made
        """
        pass
