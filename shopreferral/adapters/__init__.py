"""External adapters for the shopreferral hooks.

This package contains all external dependencies (SQLite, logging, CLI)
and provides implementations of the core port interfaces.

Adapter Organization:

- hooks/: Action/filter registry and the host's default callbacks
- cart/: Session cart readers
- store/: Option and order metadata persistence (SQLite)
- activity_log/: Channelled activity log (stdlib logging, SQLite)
- cli/: Command-line operator commands
"""
