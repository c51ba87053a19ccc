"""
Integration tests for the master station.

These tests wire configuration, executor, dispatcher and both workers
together through MasterStation and drive them tick by tick.

Running Integration Tests:
    pytest tests/integration/                    # All integration tests
    pytest tests/integration/ -m integration     # Tagged as integration
"""
