"""
Command line interface.

Usage:
    # One-shot query
    python -m chess_autopilot bestmove \\
        --fen "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1" \\
        --movetime 500 --strength 20

    # Follow a position file and answer whenever it is our turn
    python -m chess_autopilot watch --fen-file board.fen --side black
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from chess_autopilot.config import AutopilotConfig, find_engine
from chess_autopilot.errors import AutopilotError, SpawnError
from chess_autopilot.sync.adapters import FenFileProvider, LoggingMoveExecutor, parse_side
from chess_autopilot.sync.loop import SyncLoop
from chess_autopilot.uci.supervisor import RestartSupervisor
from chess_autopilot.uci.timeout import RequestTimeoutPolicy

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_file: Optional[str] = None):
    """
    Configure logging to stderr, and optionally to a file.

    Args:
        verbose: Log at DEBUG level (includes raw engine traffic)
        log_file: Also write the log to this file
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if log_file:
        handler = logging.FileHandler(log_file, mode="w")
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S")
        )
        handler.setLevel(logging.DEBUG)
        logging.getLogger().addHandler(handler)


def build_config(args) -> AutopilotConfig:
    """
    Build an AutopilotConfig from parsed arguments.

    Raises:
        FileNotFoundError: If no engine was given and none can be found
        ValueError: If an option is out of range
    """
    engine = args.engine or find_engine()

    settle_min, settle_max = 1000, 5000
    if getattr(args, "no_settle", False):
        settle_min, settle_max = 0, 0

    return AutopilotConfig(
        engine_command=[engine, *args.engine_arg],
        strength=args.strength,
        think_time_ms=args.movetime,
        retries=args.retries,
        handshake_timeout_ms=args.handshake_timeout or None,
        poll_interval_ms=getattr(args, "poll_interval", 500),
        max_consecutive_failures=getattr(args, "max_failures", 5),
        settle_min_ms=settle_min,
        settle_max_ms=settle_max,
    )


def build_policy(config: AutopilotConfig) -> RequestTimeoutPolicy:
    return RequestTimeoutPolicy(
        grace_ms=config.grace_ms,
        drain_ms=config.drain_ms,
        retries=config.retries,
        backoff_ms=config.retry_backoff_ms,
    )


def start_supervisor(config: AutopilotConfig) -> RestartSupervisor:
    """Start the engine and apply the configured strength."""
    supervisor = RestartSupervisor(
        config.engine_command,
        handshake_timeout=config.handshake_timeout,
    )
    supervisor.start()
    supervisor.set_strength(config.strength)
    return supervisor


def run_bestmove(args) -> int:
    """Ask the engine for one move and print it."""
    config = build_config(args)
    policy = build_policy(config)

    supervisor = start_supervisor(config)
    try:
        move = policy.get_best_move_with_retry(
            supervisor.session, args.fen, config.think_time_ms
        )
    finally:
        supervisor.shutdown()

    print(move)
    return 0


def run_watch(args) -> int:
    """Run the sync loop against a FEN file."""
    config = build_config(args)
    logger.info(f"Configuration: {config!r}")

    provider = FenFileProvider(Path(args.fen_file), parse_side(args.side))
    executor = LoggingMoveExecutor()

    supervisor = start_supervisor(config)
    loop = SyncLoop(provider, executor, supervisor, build_policy(config), config)

    try:
        summary = loop.run()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        loop.stop()
        return 0
    finally:
        supervisor.shutdown()

    return 0 if summary.reason == "stopped" else 2


def _add_engine_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--engine",
        type=str,
        default=None,
        help="Path to the UCI engine binary (default: auto-detect Stockfish)",
    )
    parser.add_argument(
        "--engine-arg",
        action="append",
        default=[],
        help="Extra argument passed to the engine (repeatable)",
    )
    parser.add_argument(
        "--movetime",
        type=int,
        default=500,
        help="Think time per move in milliseconds",
    )
    parser.add_argument(
        "--strength",
        type=int,
        default=20,
        help="Engine skill level (0-20)",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=2,
        help="Attempts per move before the cycle fails",
    )
    parser.add_argument(
        "--handshake-timeout",
        type=int,
        default=10000,
        help="Handshake deadline in milliseconds (0 = wait forever)",
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chess-autopilot",
        description="Drive a UCI engine against a live game",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", type=str, default=None, help="Also log to this file")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    best_parser = subparsers.add_parser("bestmove", help="Query one best move")
    best_parser.add_argument("--fen", required=True, help="Position in FEN (or 'startpos')")
    _add_engine_arguments(best_parser)

    watch_parser = subparsers.add_parser("watch", help="Play from a FEN file")
    watch_parser.add_argument("--fen-file", required=True, help="File holding the live FEN")
    watch_parser.add_argument("--side", required=True, help="Side we play: white or black")
    watch_parser.add_argument(
        "--poll-interval",
        type=int,
        default=500,
        help="Board poll interval in milliseconds",
    )
    watch_parser.add_argument(
        "--max-failures",
        type=int,
        default=5,
        help="Consecutive failed cycles before giving up",
    )
    watch_parser.add_argument(
        "--no-settle",
        action="store_true",
        help="Skip the randomized settle pause before each move",
    )
    _add_engine_arguments(watch_parser)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.verbose, args.log_file)

    handlers = {
        "bestmove": run_bestmove,
        "watch": run_watch,
    }

    try:
        return handlers[args.command](args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except SpawnError as e:
        print(f"Error: cannot start engine: {e}", file=sys.stderr)
        return 1
    except AutopilotError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
