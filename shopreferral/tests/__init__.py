"""Test suite for shopreferral.

Organized into three categories:

1. core/: Unit tests for core domain logic
   - Minimal dependencies, fast execution
   - Uses in-memory fakes for ports

2. adapters/: Integration tests for adapter implementations
   - SQLite stores against temporary database files
   - Hook bus and CLI behavior

3. fakes/: Port implementations for testing
   - In-memory implementations of CartPort, OptionStorePort, etc.
   - Used by core unit tests
"""
