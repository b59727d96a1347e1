from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import ExitStack, contextmanager
from threading import Lock

SlotKey = tuple[str, ...]


class _SlotLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = Lock()
        self.users = 0


class SlotLockRegistry:
    """Process-wide locks keyed by (axis, resource, semester, day).

    Callers take every key a proposal touches; keys are acquired in sorted
    order so two proposals sharing a teacher and a classroom cannot deadlock.
    A key is dropped once no caller holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: dict[SlotKey, _SlotLock] = {}
        self._guard = Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, keys: list[SlotKey]) -> list[_SlotLock]:
        with self._guard:
            slots = []
            for key in keys:
                slot = self._locks.get(key)
                if slot is None:
                    slot = self._locks[key] = _SlotLock()
                slot.users += 1
                slots.append(slot)
            return slots

    def _checkin(self, keys: list[SlotKey]) -> None:
        with self._guard:
            for key in keys:
                slot = self._locks.get(key)
                if slot is None:
                    continue
                slot.users -= 1
                if slot.users <= 0:
                    del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[SlotKey]) -> Iterator[None]:
        ordered = sorted(set(keys))
        slots = self._checkout(ordered)
        try:
            with ExitStack() as stack:
                for slot in slots:
                    stack.enter_context(slot.lock)
                yield
        finally:
            self._checkin(ordered)

    def clear(self) -> None:
        with self._guard:
            self._locks.clear()


slot_locks = SlotLockRegistry()


def clear_slot_locks() -> None:
    slot_locks.clear()
