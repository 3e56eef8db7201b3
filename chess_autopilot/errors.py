"""
Error Taxonomy

Every failure the engine session and the sync loop can produce derives from
AutopilotError, so callers can catch the whole family at once.

Hierarchy:
    AutopilotError
    ├── SpawnError        engine executable could not be launched (fatal)
    ├── SessionNotReady   request issued while the session is not READY
    ├── EngineTimeout     no answer within deadline + drain window
    │   └── HandshakeTimeout   no uciok/readyok within the handshake deadline
    ├── EngineDied        engine process exited or its pipes failed
    └── RestartFailed     a restart's handshake failed

Recovery policy lives in the sync loop: timeouts are retried then restarted,
deaths are always restarted, spawn errors at startup are surfaced to the user.
"""


class AutopilotError(Exception):
    """Base class for all engine session and sync loop errors."""


class SpawnError(AutopilotError):
    """The engine subprocess could not be started (not installed, no permission)."""


class SessionNotReady(AutopilotError):
    """A request was issued while the session was not in the READY state."""


class EngineTimeout(AutopilotError):
    """The engine did not answer within the deadline and drain window."""


class HandshakeTimeout(EngineTimeout):
    """The engine did not complete the uci/isready handshake in time."""


class EngineDied(AutopilotError):
    """The engine process exited or a pipe to it failed."""


class RestartFailed(AutopilotError):
    """A replacement session could not complete its handshake."""
