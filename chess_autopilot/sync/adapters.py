"""
Reference game-surface adapters.

FenFileProvider reads the live position from a text file that some other
process keeps up to date; LoggingMoveExecutor records and logs the moves it is
asked to play. Together they let the sync loop run headless (see the `watch`
CLI command) and serve as realistic collaborators in tests.
"""

import logging
from pathlib import Path
from typing import List, NamedTuple, Optional, Tuple

import chess

from chess_autopilot.sync.interfaces import BoardState, BoardStateProvider, MoveExecutor

logger = logging.getLogger(__name__)


class MoveSquares(NamedTuple):
    """A UCI move token split into its parts."""
    from_square: str
    to_square: str
    promotion: Optional[str] = None


def move_to_squares(move: str) -> MoveSquares:
    """
    Split a UCI move token into from/to squares and promotion piece.

    Args:
        move: e.g. "e2e4" or "e7e8q"

    Returns:
        MoveSquares("e7", "e8", "q")

    Raises:
        ValueError: If the token is not a valid UCI move
    """
    parsed = chess.Move.from_uci(move.strip())
    if not parsed:
        raise ValueError(f"Null move has no squares: {move}")

    promotion = chess.piece_symbol(parsed.promotion) if parsed.promotion else None
    return MoveSquares(
        chess.square_name(parsed.from_square),
        chess.square_name(parsed.to_square),
        promotion,
    )


def parse_side(name: str) -> chess.Color:
    """Parse 'white'/'black' (or 'w'/'b') into a chess.Color."""
    value = name.strip().lower()
    if value in ("white", "w"):
        return chess.WHITE
    if value in ("black", "b"):
        return chess.BLACK
    raise ValueError(f"Unknown side: {name!r} (expected 'white' or 'black')")


class FenFileProvider(BoardStateProvider):
    """
    Board provider backed by a text file holding one FEN.

    A missing, empty or unparsable file means "no active game". The turn
    flag is derived from the FEN's side-to-move field.
    """

    def __init__(self, path: Path, side: chess.Color):
        self.path = Path(path)
        self.side = side

    def fetch(self) -> Optional[BoardState]:
        try:
            text = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None

        if not text:
            return None

        try:
            board = chess.Board(text.splitlines()[0].strip())
        except ValueError as e:
            logger.debug(f"Ignoring unparsable FEN in {self.path}: {e}")
            return None

        return BoardState(
            position=board.fen(),
            is_my_turn=board.turn == self.side,
            side=self.side,
        )


class LoggingMoveExecutor(MoveExecutor):
    """Executor that logs each move and keeps a history of what it played."""

    def __init__(self):
        self.moves: List[Tuple[str, chess.Color]] = []

    def apply(self, move: str, side: chess.Color) -> bool:
        try:
            squares = move_to_squares(move)
        except ValueError as e:
            logger.error(f"Cannot play {move!r}: {e}")
            return False

        suffix = f" ={squares.promotion.upper()}" if squares.promotion else ""
        logger.info(
            f"Play {move} for {chess.COLOR_NAMES[side]}: "
            f"{squares.from_square} -> {squares.to_square}{suffix}"
        )
        self.moves.append((move, side))
        return True
