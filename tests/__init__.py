"""
nounkit test suite.

This package contains:
- unit/: Unit tests (in-memory and temporary SQLite backends)
- integration/: Integration tests (durable storage, mocked remote, HTTP app)
"""
