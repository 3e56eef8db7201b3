#!/usr/bin/env python3
"""
Scripted fake UCI engine used by the subprocess-level tests.

Usage:
    python tests/fake_engine.py <mode> [--move e2e4] [--log commands.txt] ...

Modes:
    healthy               answers every 'go' with 'bestmove <move>'
    silent                completes the handshake, never answers 'go' or 'stop'
    late                  answers 'go' only once 'stop' is received
    very_late             first search: answers 'stop' after --late-delay-ms
                          with --late-move; later searches answer at once
    exit_on_go            exits as soon as 'go' is received
    exit_after_handshake  exits right after sending 'readyok'
    no_readyok            sends 'uciok' but never 'readyok'
    crash_on_start        exits before reading anything

Every received command is appended to --log (one per line) so tests can
check what the engine was told, e.g. its configured skill level.
"""

import argparse
import sys
import threading
import time

_write_lock = threading.Lock()
_options = None


def emit(line: str):
    with _write_lock:
        data = line + "\n"
        if _options.chunked and len(data) > 2:
            # Split each line so the client has to reassemble it
            middle = len(data) // 2
            sys.stdout.write(data[:middle])
            sys.stdout.flush()
            time.sleep(0.02)
            sys.stdout.write(data[middle:])
        else:
            sys.stdout.write(data)
        sys.stdout.flush()


def record(command: str):
    if _options.log:
        with open(_options.log, "a", encoding="utf-8") as handle:
            handle.write(command + "\n")


def answer(move: str, delay_ms: int = 0):
    if delay_ms:
        time.sleep(delay_ms / 1000.0)
    emit("info depth 1 seldepth 1 score cp 20 nodes 42 pv " + move)
    emit(f"bestmove {move} ponder e7e5")


def main():
    global _options

    parser = argparse.ArgumentParser()
    parser.add_argument("mode")
    parser.add_argument("--move", default="e2e4")
    parser.add_argument("--late-move", default="a7a6")
    parser.add_argument("--late-delay-ms", type=int, default=800)
    parser.add_argument("--delay-ms", type=int, default=0)
    parser.add_argument("--log", default=None)
    parser.add_argument("--chunked", action="store_true")
    _options = parser.parse_args()
    mode = _options.mode

    if mode == "crash_on_start":
        sys.exit(3)

    print("Fake engine for tests", file=sys.stderr, flush=True)

    searching = False
    searches = 0

    while True:
        line = sys.stdin.readline()
        if not line:
            return

        command = line.strip()
        if not command:
            continue
        record(command)

        if command == "uci":
            emit("id name FakeEngine")
            emit("id author tests")
            emit("option name Skill Level type spin default 20 min 0 max 20")
            emit("uciok")

        elif command == "isready":
            if mode == "no_readyok":
                continue
            emit("readyok")
            if mode == "exit_after_handshake":
                sys.exit(0)

        elif command.startswith("go"):
            searches += 1
            if mode == "exit_on_go":
                sys.exit(1)
            if mode == "healthy" or (mode == "very_late" and searches > 1):
                answer(_options.move, _options.delay_ms)
            else:
                searching = True

        elif command == "stop":
            if not searching:
                continue
            searching = False
            if mode == "late":
                answer(_options.move)
            elif mode == "very_late":
                timer = threading.Timer(
                    _options.late_delay_ms / 1000.0,
                    answer,
                    args=(_options.late_move,),
                )
                timer.daemon = True
                timer.start()

        elif command == "quit":
            return


if __name__ == "__main__":
    main()
