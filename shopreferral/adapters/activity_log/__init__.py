"""Activity log adapters.

Implementations support:
- stdlib: forwards to the logging module (default)
- sqlite: persisted, queryable log table
"""
