"""
Tests for chess_autopilot

Most modules run against in-memory doubles (tests/helpers.py). The
subprocess tests launch tests/fake_engine.py, a scripted UCI engine, so no
real Stockfish install is needed.

Running Tests:
    # Run all tests
    pytest tests/

    # Run specific test file
    pytest tests/test_session.py

    # Run with coverage
    pytest tests/ --cov=chess_autopilot --cov-report=html

Dependencies:
    - pytest: Test framework
    - pytest-cov: Coverage reporting
"""
