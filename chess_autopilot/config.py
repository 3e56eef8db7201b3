"""
Autopilot configuration.
"""

import shutil
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from chess_autopilot.uci.timeout import MIN_DRAIN_MS, MIN_GRACE_MS

ENGINE_CANDIDATES = [
    "stockfish",
    "/usr/local/bin/stockfish",
    "/usr/bin/stockfish",
    "/usr/games/stockfish",
    "/opt/homebrew/bin/stockfish",
]


def find_engine(candidates: Sequence[str] = ENGINE_CANDIDATES) -> str:
    """
    Resolve the first runnable UCI engine among the candidates.

    Bare names are looked up on PATH; absolute paths must be executable.

    Args:
        candidates: Names or paths to try, in order

    Returns:
        Path to the engine executable

    Raises:
        FileNotFoundError: If none of the candidates can be run
    """
    for candidate in candidates:
        path = shutil.which(candidate)
        if path:
            return path

    tried = ", ".join(candidates)
    raise FileNotFoundError(
        f"No UCI engine found (tried: {tried}). Pass --engine /path/to/engine "
        "or install Stockfish"
    )


@dataclass
class AutopilotConfig:
    """Configuration for the engine session and the sync loop.

    Defaults: half a second of thinking per move, the board polled every
    half second, full strength.
    """

    # Engine
    engine_command: List[str] = field(default_factory=lambda: ["stockfish"])
    """argv used to launch the UCI engine"""

    strength: int = 20
    """Engine skill level (0-20), re-applied after every restart"""

    handshake_timeout_ms: Optional[int] = 10000
    """Deadline for uci/isready handshake (None = wait forever)"""

    # Move requests
    think_time_ms: int = 500
    """Search time per move, sent as 'go movetime'"""

    grace_ms: int = MIN_GRACE_MS
    """Extra time beyond think time before sending 'stop' (>= 3000)"""

    drain_ms: int = MIN_DRAIN_MS
    """Time to wait for a late bestmove after 'stop' (>= 500)"""

    retries: int = 2
    """Attempts per move before the cycle counts as failed"""

    retry_backoff_ms: int = 300
    """Pause between attempts"""

    # Loop pacing
    poll_interval_ms: int = 500
    """Pause between board polls"""

    settle_min_ms: int = 1000
    """Lower bound of the randomized settle pause before re-reading the board"""

    settle_max_ms: int = 5000
    """Upper bound of the settle pause (0 disables the pause and re-read)"""

    failure_pause_ms: int = 2000
    """Pause after a failed cycle before restarting the engine"""

    max_consecutive_failures: int = 5
    """Stop the loop after this many failed cycles in a row"""

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.engine_command = list(self.engine_command)

        if not self.engine_command:
            raise ValueError("engine_command must not be empty")

        if not 0 <= self.strength <= 20:
            raise ValueError(f"strength must be between 0 and 20, got {self.strength}")

        if self.think_time_ms <= 0:
            raise ValueError(f"think_time_ms must be positive, got {self.think_time_ms}")

        if self.grace_ms < MIN_GRACE_MS:
            raise ValueError(f"grace_ms must be >= {MIN_GRACE_MS}, got {self.grace_ms}")

        if self.drain_ms < MIN_DRAIN_MS:
            raise ValueError(f"drain_ms must be >= {MIN_DRAIN_MS}, got {self.drain_ms}")

        if self.retries < 1:
            raise ValueError(f"retries must be >= 1, got {self.retries}")

        if self.poll_interval_ms < 0:
            raise ValueError(f"poll_interval_ms must be >= 0, got {self.poll_interval_ms}")

        if self.settle_min_ms < 0 or (
            self.settle_max_ms != 0 and self.settle_max_ms < self.settle_min_ms
        ):
            raise ValueError(
                f"settle window must satisfy 0 <= min <= max (or max = 0), got "
                f"{self.settle_min_ms}..{self.settle_max_ms}"
            )

        if self.max_consecutive_failures < 1:
            raise ValueError(
                f"max_consecutive_failures must be >= 1, got {self.max_consecutive_failures}"
            )

        if self.handshake_timeout_ms is not None and self.handshake_timeout_ms <= 0:
            raise ValueError(
                f"handshake_timeout_ms must be positive or None, got {self.handshake_timeout_ms}"
            )

    @property
    def settle_enabled(self) -> bool:
        return self.settle_max_ms > 0

    @property
    def handshake_timeout(self) -> Optional[float]:
        """Handshake deadline in seconds."""
        if self.handshake_timeout_ms is None:
            return None
        return self.handshake_timeout_ms / 1000.0

    def __repr__(self) -> str:
        return (
            f"AutopilotConfig(\n"
            f"  Engine: {' '.join(self.engine_command)} (strength={self.strength})\n"
            f"  Requests: think={self.think_time_ms}ms grace={self.grace_ms}ms "
            f"drain={self.drain_ms}ms retries={self.retries}\n"
            f"  Loop: poll={self.poll_interval_ms}ms settle={self.settle_min_ms}-"
            f"{self.settle_max_ms}ms give up after {self.max_consecutive_failures} failures\n"
            f")"
        )
