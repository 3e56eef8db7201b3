"""
UCI Line Parsing and Command Formatting

Only three engine output shapes matter to the session:

    uciok                    handshake step 1 complete
    readyok                  handshake step 2 complete / engine synchronised
    bestmove <move> [...]    answer to the pending 'go'

Everything else (id, option, info depth/score/pv, info string, copyprotection
notices, blank lines) is ignored. The parser is permissive: an
engine's informational chatter must never turn into a parse failure.

Reference:
    UCI Protocol: https://www.chessprogramming.org/UCI
"""

import re
from enum import Enum
from typing import NamedTuple, Optional

BESTMOVE_PATTERN = re.compile(r"^bestmove\s+(\S+)")

STARTPOS = "startpos"
MIN_STRENGTH = 0
MAX_STRENGTH = 20


class LineKind(Enum):
    """Semantic category of one engine output line."""
    UCIOK = "uciok"
    READYOK = "readyok"
    BESTMOVE = "bestmove"
    OTHER = "other"


class EngineLine(NamedTuple):
    """A classified engine output line; move is set for BESTMOVE only."""
    kind: LineKind
    move: Optional[str] = None


def parse_line(line: str) -> EngineLine:
    """
    Classify one line of engine output.

    Args:
        line: Raw line without terminator

    Returns:
        EngineLine with kind OTHER for anything that is not uciok, readyok
        or a well-formed bestmove line

    Example:
        >>> parse_line("bestmove e2e4 ponder e7e5")
        EngineLine(kind=<LineKind.BESTMOVE: 'bestmove'>, move='e2e4')
    """
    text = line.strip()

    if text == "uciok":
        return EngineLine(LineKind.UCIOK)
    if text == "readyok":
        return EngineLine(LineKind.READYOK)

    match = BESTMOVE_PATTERN.match(text)
    if match:
        return EngineLine(LineKind.BESTMOVE, match.group(1))

    return EngineLine(LineKind.OTHER)


def clamp_strength(level: int) -> int:
    """Clamp a skill level into the engine's accepted 0-20 range."""
    return max(MIN_STRENGTH, min(MAX_STRENGTH, int(level)))


def position_command(position: str) -> str:
    """
    Build the 'position' command for a FEN string.

    The literal 'startpos' is passed through as 'position startpos'.
    """
    position = position.strip()
    if position == STARTPOS:
        return f"position {STARTPOS}"
    return f"position fen {position}"


def go_movetime_command(think_time_ms: int) -> str:
    return f"go movetime {int(think_time_ms)}"


def strength_command(level: int) -> str:
    return f"setoption name Skill Level value {clamp_strength(level)}"
