import threading

import pytest

from app.services.slot_locks import SlotLockRegistry

CLASSROOM = ("classroom", "R1", "S1", "Monday")
TEACHER = ("teacher", "T1", "S1", "Monday")


def test_idle_keys_are_dropped_after_release():
    registry = SlotLockRegistry()

    with registry.hold([TEACHER, CLASSROOM]):
        assert len(registry) == 2

    assert len(registry) == 0


def test_keys_are_released_when_the_body_raises():
    registry = SlotLockRegistry()

    with pytest.raises(RuntimeError):
        with registry.hold([CLASSROOM]):
            raise RuntimeError("boom")

    assert len(registry) == 0
    with registry.hold([CLASSROOM]):
        pass


def test_waiting_caller_keeps_the_key_until_it_is_done():
    registry = SlotLockRegistry()
    entered = threading.Event()
    waiter_done = threading.Event()

    def waiter():
        entered.wait()
        with registry.hold([CLASSROOM]):
            pass
        waiter_done.set()

    thread = threading.Thread(target=waiter)
    thread.start()
    with registry.hold([CLASSROOM]):
        entered.set()
        assert not waiter_done.wait(0.1)
    thread.join(timeout=5)

    assert waiter_done.is_set()
    assert len(registry) == 0


def test_many_semesters_do_not_accumulate_keys():
    registry = SlotLockRegistry()

    for semester in range(50):
        with registry.hold([("classroom", "R1", f"S{semester}", "Monday")]):
            pass

    assert len(registry) == 0
