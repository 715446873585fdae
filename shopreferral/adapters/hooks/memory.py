"""In-memory hook bus adapter.

Implements HookBusPort with per-hook priority buckets, mirroring the
host platform's action/filter registry semantics.
"""

import inspect
import logging
from collections import defaultdict
from typing import Any

from shopreferral.core.ports import HookBusPort, HookCallback

logger = logging.getLogger(__name__)


def _callback_name(callback: HookCallback | str) -> str:
    if isinstance(callback, str):
        return callback
    return getattr(callback, "__name__", repr(callback))


class InMemoryHookBus(HookBusPort):
    """Process-local action and filter registry."""

    def __init__(self) -> None:
        # hook name -> priority -> callbacks in registration order
        self._actions: dict[str, dict[int, list[HookCallback]]] = defaultdict(
            lambda: defaultdict(list)
        )
        self._filters: dict[str, dict[int, list[HookCallback]]] = defaultdict(
            lambda: defaultdict(list)
        )

    def add_action(self, name: str, callback: HookCallback, priority: int = 10) -> None:
        self._actions[name][priority].append(callback)
        logger.debug(f"Action registered: {name} -> {_callback_name(callback)}")

    def add_filter(self, name: str, callback: HookCallback, priority: int = 10) -> None:
        self._filters[name][priority].append(callback)
        logger.debug(f"Filter registered: {name} -> {_callback_name(callback)}")

    def remove_action(
        self, name: str, callback: HookCallback | str, priority: int = 10
    ) -> bool:
        bucket = self._actions.get(name, {}).get(priority)
        if not bucket:
            return False

        for index, registered in enumerate(bucket):
            if registered == callback or _callback_name(registered) == _callback_name(callback):
                del bucket[index]
                logger.debug(f"Action removed: {name} -> {_callback_name(callback)}")
                return True
        return False

    def has_action(self, name: str, callback: HookCallback | str) -> bool:
        target = _callback_name(callback)
        return any(
            registered == callback or _callback_name(registered) == target
            for bucket in self._actions.get(name, {}).values()
            for registered in bucket
        )

    async def do_action(self, name: str, *args: Any) -> None:
        for callback in self._ordered(self._actions, name):
            await self._call(callback, *args)

    async def apply_filters(self, name: str, value: Any, *args: Any) -> Any:
        for callback in self._ordered(self._filters, name):
            value = await self._call(callback, value, *args)
        return value

    @staticmethod
    def _ordered(
        registry: dict[str, dict[int, list[HookCallback]]], name: str
    ) -> list[HookCallback]:
        # Snapshot so callbacks may add or remove hooks while dispatching
        buckets = registry.get(name, {})
        return [cb for priority in sorted(buckets) for cb in list(buckets[priority])]

    @staticmethod
    async def _call(callback: HookCallback, *args: Any) -> Any:
        result = callback(*args)
        if inspect.isawaitable(result):
            return await result
        return result
