"""Fake implementations of core ports for testing.

These in-memory implementations allow core domain logic to be tested
without external dependencies:

- FakeCart: Fixed line items, with call counting
- FakeOptionStore: In-memory option values
- FakeOrderMetaStore: In-memory order metadata with write tracking
- FakeActivityLog: Captured activity entries for assertion
- FakeHookBus: Recorded registrations and removals
"""

from .activity_log import FakeActivityLog
from .cart import FakeCart
from .hook_bus import FakeHookBus
from .store import FakeOptionStore, FakeOrderMetaStore

__all__ = [
    "FakeActivityLog",
    "FakeCart",
    "FakeHookBus",
    "FakeOptionStore",
    "FakeOrderMetaStore",
]
