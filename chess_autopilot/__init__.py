"""
Chess Autopilot

Drives an external UCI engine (Stockfish) through its standard input/output
and paces move requests against a live game that changes on its own schedule.

## Architecture

1. **uci**: Engine session
   - LineTransport: subprocess pipes → complete lines
   - UciSession: handshake and request state machine, one pending request
   - RequestTimeoutPolicy: deadline, stop-and-drain, bounded retry
   - RestartSupervisor: rebuilds dead sessions, keeps configured strength

2. **sync**: Game synchronization
   - SyncLoop: poll, de-duplicate, settle, request, play, recover
   - BoardStateProvider / MoveExecutor: interfaces to the game surface
   - FenFileProvider / LoggingMoveExecutor: headless reference adapters

3. **config**: AutopilotConfig and engine auto-detection

4. **errors**: SpawnError, SessionNotReady, EngineTimeout, EngineDied,
   RestartFailed

## Quick Start

```python
from chess_autopilot import AutopilotConfig, RequestTimeoutPolicy, RestartSupervisor

config = AutopilotConfig(engine_command=["stockfish"])
supervisor = RestartSupervisor(config.engine_command, config.handshake_timeout)
supervisor.start()
supervisor.set_strength(10)

policy = RequestTimeoutPolicy(retries=2)
move = policy.get_best_move_with_retry(supervisor.session, "startpos", 500)
print(move)  # e.g. "e2e4"
supervisor.shutdown()
```

### From the command line

```bash
python -m chess_autopilot bestmove --fen startpos --movetime 500
```

## Version

0.1.0
"""

__version__ = "0.1.0"
__license__ = "MIT"

from chess_autopilot.config import AutopilotConfig, find_engine
from chess_autopilot.errors import (
    AutopilotError,
    EngineDied,
    EngineTimeout,
    HandshakeTimeout,
    RestartFailed,
    SessionNotReady,
    SpawnError,
)
from chess_autopilot.sync import BoardState, BoardStateProvider, MoveExecutor, SyncLoop
from chess_autopilot.uci import (
    LineTransport,
    RequestTimeoutPolicy,
    RestartSupervisor,
    SessionState,
    UciSession,
)

__all__ = [
    'AutopilotConfig',
    'AutopilotError',
    'BoardState',
    'BoardStateProvider',
    'EngineDied',
    'EngineTimeout',
    'HandshakeTimeout',
    'LineTransport',
    'MoveExecutor',
    'RequestTimeoutPolicy',
    'RestartFailed',
    'RestartSupervisor',
    'SessionNotReady',
    'SessionState',
    'SpawnError',
    'SyncLoop',
    'UciSession',
    'find_engine',
]
