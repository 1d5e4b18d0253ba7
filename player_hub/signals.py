"""
Minimal observer lists.

Every observable in player_hub exposes one Signal per notification. Handlers
run synchronously, in connection order, inside the emitting call.
"""
from __future__ import annotations
import itertools
from typing import Any, Callable, Dict, List, Tuple

# Handler ids are unique across all signals so a stale id can never
# disconnect somebody else's handler.
_handler_ids = itertools.count(1)


class Signal:
    def __init__(self, name: str = ""):
        self.name = name
        self._handlers: Dict[int, Callable[..., Any]] = {}

    def connect(self, callback: Callable[..., Any]) -> int:
        handler_id = next(_handler_ids)
        self._handlers[handler_id] = callback
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        """Unknown or already removed ids are ignored."""
        self._handlers.pop(handler_id, None)

    def emit(self, *args: Any) -> None:
        # Copy first: handlers may disconnect themselves (or others) while running
        for handler_id, callback in list(self._handlers.items()):
            if handler_id in self._handlers:
                callback(*args)

    def clear(self) -> None:
        self._handlers.clear()

    def __len__(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f"<Signal {self.name or '?'} handlers={len(self._handlers)}>"


class SignalTracker:
    """Remembers (signal, handler id) pairs so an owner can drop them all at once."""

    def __init__(self):
        self._connections: List[Tuple[Signal, int]] = []

    def push(self, signal: Signal, callback: Callable[..., Any]) -> int:
        handler_id = signal.connect(callback)
        self._connections.append((signal, handler_id))
        return handler_id

    def disconnect_all(self) -> None:
        connections, self._connections = self._connections, []
        for signal, handler_id in connections:
            signal.disconnect(handler_id)

    def __len__(self) -> int:
        return len(self._connections)
