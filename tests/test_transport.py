"""
Unit Tests for LineTransport and LineBuffer

Tests for the subprocess line layer, focusing on:
    - Reassembly of lines split across arbitrary read chunks
    - Launch failures surfaced as SpawnError
    - Writes after engine exit reported, not raised
"""

import sys

import pytest

from chess_autopilot.errors import SpawnError
from chess_autopilot.uci.transport import LineBuffer, LineTransport
from tests.helpers import fake_engine_command, wait_for


class TestLineBuffer:
    """Tests for byte chunk to line splitting."""

    def test_complete_lines(self):
        buffer = LineBuffer()

        assert buffer.feed(b"uciok\nreadyok\n") == ["uciok", "readyok"]
        assert buffer.pending == b""

    def test_line_split_across_chunks(self):
        buffer = LineBuffer()

        assert buffer.feed(b"bestmo") == []
        assert buffer.feed(b"ve e2e4 pon") == []
        assert buffer.feed(b"der e7e5\ninfo") == ["bestmove e2e4 ponder e7e5"]
        assert buffer.pending == b"info"

    def test_crlf_stripped(self):
        buffer = LineBuffer()

        assert buffer.feed(b"uciok\r\n\r\n") == ["uciok", ""]

    def test_invalid_utf8_replaced(self):
        buffer = LineBuffer()

        lines = buffer.feed(b"id name \xff\xfeEngine\n")

        assert lines[0].startswith("id name ")
        assert lines[0].endswith("Engine")

    def test_multibyte_character_split(self):
        """A UTF-8 sequence cut by a chunk boundary decodes intact."""
        encoded = "id author Müller\n".encode("utf-8")
        cut = encoded.index(b"\xc3") + 1
        buffer = LineBuffer()

        assert buffer.feed(encoded[:cut]) == []
        assert buffer.feed(encoded[cut:]) == ["id author Müller"]

    def test_flush_returns_unterminated_remainder(self):
        buffer = LineBuffer()
        buffer.feed(b"uciok\nbestmove d2d4")

        assert buffer.flush() == "bestmove d2d4"
        assert buffer.flush() is None


class TestLineTransport:
    """Tests against real processes."""

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            LineTransport([])

    def test_missing_executable_raises_spawn_error(self):
        transport = LineTransport(["/nonexistent/path/to/stockfish"])

        with pytest.raises(SpawnError):
            transport.start()

    def test_start_twice_rejected(self):
        transport = LineTransport(fake_engine_command("healthy"))
        transport.start()
        try:
            with pytest.raises(RuntimeError):
                transport.start()
        finally:
            transport.stop()

    def test_chunked_output_reassembled(self):
        """Lines written in halves by the engine arrive whole."""
        transport = LineTransport(fake_engine_command("healthy", "--chunked"))
        transport.start()
        try:
            assert transport.send_line("uci")
            lines = []
            for line in transport.read_lines():
                lines.append(line)
                if line == "uciok":
                    break
        finally:
            transport.stop()

        assert lines == [
            "id name FakeEngine",
            "id author tests",
            "option name Skill Level type spin default 20 min 0 max 20",
            "uciok",
        ]

    def test_stream_ends_when_engine_exits(self):
        transport = LineTransport(fake_engine_command("healthy"))
        transport.start()
        try:
            transport.send_line("quit")
            assert list(transport.read_lines()) == []
            assert wait_for(lambda: not transport.is_alive)
            assert transport.returncode == 0
        finally:
            transport.stop()

    def test_send_after_exit_returns_false(self):
        transport = LineTransport(fake_engine_command("crash_on_start"))
        transport.start()
        try:
            assert wait_for(lambda: not transport.is_alive)

            assert transport.send_line("isready") is False
            assert transport.returncode == 3
        finally:
            transport.stop()

    def test_unterminated_final_line_delivered(self):
        script = "import sys; sys.stdout.write('uciok\\nbestmove e2e4'); sys.stdout.flush()"
        transport = LineTransport([sys.executable, "-c", script])
        transport.start()
        try:
            lines = list(transport.read_lines())
        finally:
            transport.stop()

        assert lines == ["uciok", "bestmove e2e4"]

    def test_stderr_kept_for_diagnostics(self):
        transport = LineTransport(fake_engine_command("healthy"))
        transport.start()
        try:
            assert wait_for(lambda: "Fake engine for tests" in transport.stderr_tail)
        finally:
            transport.stop()

    def test_stop_is_idempotent(self):
        transport = LineTransport(fake_engine_command("silent"))
        transport.start()

        transport.stop()
        transport.stop()

        assert not transport.is_alive
        assert transport.send_line("uci") is False

    def test_stop_before_start_is_noop(self):
        transport = LineTransport(["stockfish"])

        transport.stop()

        assert transport.pid is None
        assert transport.returncode is None
