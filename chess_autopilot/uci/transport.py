"""
Line Transport

Owns the engine subprocess and turns its stdout byte stream into discrete
protocol lines.

The engine writes whenever it likes and the OS hands us arbitrary chunks, so a
single read may hold half a line, or several lines at once. LineBuffer keeps
the unterminated tail and prefixes it to the next chunk; only complete lines
ever leave the transport.

Threading:
    - read_lines() is consumed by exactly one thread (the session reader)
    - send_line() may be called from any thread (guarded by a write lock)
    - stderr is drained by a daemon thread, for logging only
"""

import logging
import os
import subprocess
import threading
from collections import deque
from typing import Iterator, List, Optional, Sequence

from chess_autopilot.errors import SpawnError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096
STDERR_TAIL_LINES = 50


class LineBuffer:
    """
    Incremental splitter from raw byte chunks to decoded text lines.

    Lines are decoded as UTF-8 (undecodable bytes replaced) and stripped of the
    trailing newline and carriage return.
    """

    def __init__(self):
        self._pending = b""

    def feed(self, chunk: bytes) -> List[str]:
        """
        Add a chunk and return every line it completes.

        Args:
            chunk: Raw bytes read from the stream

        Returns:
            Complete lines, in stream order (may be empty)
        """
        data = self._pending + chunk
        *complete, self._pending = data.split(b"\n")
        return [self._decode(raw) for raw in complete]

    def flush(self) -> Optional[str]:
        """Return the unterminated remainder at end of stream, if any."""
        if not self._pending:
            return None
        remainder, self._pending = self._pending, b""
        return self._decode(remainder)

    @property
    def pending(self) -> bytes:
        return self._pending

    @staticmethod
    def _decode(raw: bytes) -> str:
        return raw.decode("utf-8", errors="replace").rstrip("\r")


class LineTransport:
    """
    Subprocess wrapper exposing a lazy line stream and a line-send primitive.

    A transport is single-use: once the output stream has ended, create a new
    LineTransport to talk to a new process.

    Attributes:
        command: argv used to launch the engine
        cwd: Working directory for the engine process (None = inherit)
    """

    def __init__(self, command: Sequence[str], cwd: Optional[str] = None):
        if not command:
            raise ValueError("Engine command must not be empty")

        self.command = list(command)
        self.cwd = cwd

        self._process: Optional[subprocess.Popen] = None
        self._write_lock = threading.Lock()
        self._stderr_thread: Optional[threading.Thread] = None
        self._stderr_tail = deque(maxlen=STDERR_TAIL_LINES)
        self._stopped = False

    def start(self):
        """
        Spawn the engine with stdin, stdout and stderr connected as pipes.

        Raises:
            SpawnError: If the executable cannot be launched
            RuntimeError: If the transport was already started
        """
        if self._process is not None:
            raise RuntimeError("LineTransport already started")

        try:
            self._process = subprocess.Popen(
                self.command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
                cwd=self.cwd,
            )
        except FileNotFoundError as e:
            raise SpawnError(f"Engine executable not found: {self.command[0]}") from e
        except PermissionError as e:
            raise SpawnError(f"Permission denied launching engine: {self.command[0]}") from e
        except OSError as e:
            raise SpawnError(f"Failed to launch engine {self.command[0]}: {e}") from e

        logger.info(f"Engine process started: pid={self._process.pid} cmd={' '.join(self.command)}")

        self._stderr_thread = threading.Thread(
            target=self._drain_stderr,
            name=f"engine-stderr-{self._process.pid}",
            daemon=True,
        )
        self._stderr_thread.start()

    def read_lines(self) -> Iterator[str]:
        """
        Yield complete output lines until the engine's stdout closes.

        Yields:
            Decoded lines without their line terminator
        """
        if self._process is None:
            raise RuntimeError("LineTransport not started")

        stdout = self._process.stdout
        buffer = LineBuffer()

        try:
            while True:
                try:
                    chunk = os.read(stdout.fileno(), CHUNK_SIZE)
                except (OSError, ValueError) as e:
                    logger.debug(f"Engine stdout read failed: {e}")
                    break

                if not chunk:
                    break

                for line in buffer.feed(chunk):
                    yield line

            remainder = buffer.flush()
            if remainder:
                yield remainder
        finally:
            stdout.close()
            logger.debug(f"Engine stdout closed (pid={self._process.pid})")

    def send_line(self, text: str) -> bool:
        """
        Write one command line to the engine.

        Writing to an engine that has already exited is not an error: shutdown
        races are expected, so the call just reports that nothing was sent.

        Args:
            text: Command without line terminator

        Returns:
            True if the line was written, False if the engine is gone
        """
        process = self._process
        if process is None or process.poll() is not None:
            logger.debug(f"Dropped command for exited engine: {text}")
            return False

        data = (text + "\n").encode("utf-8")
        with self._write_lock:
            try:
                process.stdin.write(data)
                process.stdin.flush()
            except (BrokenPipeError, ValueError, OSError) as e:
                logger.debug(f"Write to engine failed ({e}): {text}")
                return False

        logger.debug(f">>> {text}")
        return True

    def stop(self, timeout: float = 1.0):
        """
        Terminate the engine process. Safe to call more than once.

        Args:
            timeout: Seconds to wait after terminate() before killing
        """
        process = self._process
        if process is None or self._stopped:
            return
        self._stopped = True

        with self._write_lock:
            try:
                process.stdin.close()
            except OSError:
                pass

        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"Engine pid={process.pid} ignored terminate, killing")
                process.kill()
                process.wait(timeout=timeout)

        logger.info(f"Engine process stopped: pid={process.pid} returncode={process.returncode}")

    @property
    def is_alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    @property
    def returncode(self) -> Optional[int]:
        if self._process is None:
            return None
        return self._process.poll()

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    @property
    def stderr_tail(self) -> List[str]:
        """Most recent stderr lines (informational only)."""
        return list(self._stderr_tail)

    def _drain_stderr(self):
        stderr = self._process.stderr
        try:
            for raw in iter(stderr.readline, b""):
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                self._stderr_tail.append(line)
                logger.debug(f"[engine stderr] {line}")
        except (OSError, ValueError):
            pass
        finally:
            stderr.close()

    def __repr__(self) -> str:
        state = "alive" if self.is_alive else "stopped"
        return f"LineTransport(cmd={self.command[0]!r}, pid={self.pid}, {state})"
