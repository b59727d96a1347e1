from contextlib import contextmanager
import threading

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from app.core.exceptions import ClassroomConflict
from app.db.base import Base
from app.models.timetable_entry import TimetableEntry
from app.schemas.timetable import TimetableEntryCreate
from app.services.conflict_service import ConflictService
from app.services.slot_locks import SlotLockRegistry


class NoLocks:
    """Lets both writers reach the store so only its unique indexes arbitrate."""

    @contextmanager
    def hold(self, keys):
        yield


@pytest.fixture
def file_sessionmaker(tmp_path):
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def _race(session_factory, locks) -> list:
    barrier = threading.Barrier(2)
    outcomes: list = []
    outcome_lock = threading.Lock()

    def propose(teacher: str) -> None:
        db = session_factory()
        service = ConflictService(db, locks=locks)
        candidate = TimetableEntryCreate(
            teacher=teacher,
            subject="SUB1",
            classroom="R1",
            semester="S1",
            dayOfWeek="Wednesday",
            startTime="13:00",
            endTime="13:45",
        )
        barrier.wait()
        try:
            entry = service.propose_entry(candidate)
            result = ("ok", entry.id)
        except ClassroomConflict as exc:
            result = ("conflict", exc.details["conflict"]["id"])
        except Exception as exc:  # surfaced through the assertion below
            result = ("error", repr(exc))
        finally:
            db.close()
        with outcome_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=propose, args=(teacher,)) for teacher in ("T1", "T2")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


@pytest.mark.parametrize("locks", [SlotLockRegistry(), NoLocks()], ids=["slot-locks", "store-constraint"])
def test_exactly_one_of_two_simultaneous_proposals_wins(file_sessionmaker, locks):
    outcomes = _race(file_sessionmaker, locks)

    kinds = sorted(kind for kind, _ in outcomes)
    assert kinds == ["conflict", "ok"], outcomes
    winner = next(value for kind, value in outcomes if kind == "ok")
    blocker = next(value for kind, value in outcomes if kind == "conflict")
    assert blocker == winner

    with file_sessionmaker() as db:
        stored = list(db.execute(select(TimetableEntry)).scalars())
    assert [entry.id for entry in stored] == [winner]
