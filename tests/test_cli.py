"""
Tests for the command line interface
"""

import sys

import pytest

from chess_autopilot.cli import build_config, create_parser, main
from tests.helpers import AFTER_E4_FEN, FAKE_ENGINE


def fake_engine_args(mode="healthy", *extra):
    args = ["--engine", sys.executable, "--engine-arg", FAKE_ENGINE, "--engine-arg", mode]
    for value in extra:
        args.append(f"--engine-arg={value}")
    return args


class TestParser:
    def test_bestmove_defaults(self):
        args = create_parser().parse_args(["bestmove", "--fen", "startpos", "--engine", "sf"])
        config = build_config(args)

        assert config.engine_command == ["sf"]
        assert config.think_time_ms == 500
        assert config.strength == 20
        assert config.handshake_timeout_ms == 10000

    def test_watch_options(self):
        args = create_parser().parse_args(
            [
                "watch",
                "--fen-file", "board.fen",
                "--side", "black",
                "--engine", "sf",
                "--engine-arg=--threads=2",
                "--poll-interval", "250",
                "--max-failures", "3",
                "--handshake-timeout", "0",
                "--no-settle",
            ]
        )
        config = build_config(args)

        assert config.engine_command == ["sf", "--threads=2"]
        assert config.poll_interval_ms == 250
        assert config.max_consecutive_failures == 3
        assert config.handshake_timeout_ms is None
        assert not config.settle_enabled


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_bestmove_prints_move(self, capsys):
        argv = ["bestmove", "--fen", AFTER_E4_FEN, "--movetime", "100"]
        argv += fake_engine_args("healthy", "--move", "e7e5")

        assert main(argv) == 0
        assert capsys.readouterr().out.strip().splitlines()[-1] == "e7e5"

    def test_missing_engine_reports_error(self, capsys):
        argv = ["bestmove", "--fen", "startpos", "--engine", "/nonexistent/stockfish"]

        assert main(argv) == 1
        assert "cannot start engine" in capsys.readouterr().err

    def test_out_of_range_option_reports_error(self, capsys):
        argv = ["bestmove", "--fen", "startpos", "--strength", "42", "--engine", "sf"]

        assert main(argv) == 1
        assert "strength" in capsys.readouterr().err

    def test_watch_gives_up_with_exit_code(self, tmp_path):
        fen_file = tmp_path / "board.fen"
        fen_file.write_text(AFTER_E4_FEN)
        argv = [
            "watch",
            "--fen-file", str(fen_file),
            "--side", "black",
            "--poll-interval", "0",
            "--max-failures", "1",
            "--no-settle",
            "--retries", "1",
            "--movetime", "100",
        ]
        argv += fake_engine_args("exit_on_go")

        assert main(argv) == 2

    @pytest.mark.parametrize("argv", [["bestmove"], ["watch", "--side", "white"]])
    def test_missing_required_arguments(self, argv):
        with pytest.raises(SystemExit):
            main(argv)
