"""Store adapters for options and order metadata.

Implementations support:
- SQLite (zero-config, single-file, via aiosqlite)
"""
