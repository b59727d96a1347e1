"""SQLAlchemy-backed store for timetable entries.

The store owns every query the conflict engine issues. Its table carries two
partial unique indexes (classroom slot, teacher slot, active rows only), which
is the contract the engine relies on to reject a losing concurrent writer.
"""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import DBAPIError, IntegrityError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from app.core.exceptions import StoreUnavailable
from app.models.timetable_entry import DayOfWeek, TimetableEntry

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(db: Session) -> Iterator[None]:
    """Translate driver and pool failures into ``StoreUnavailable``.

    Integrity errors pass through untouched; callers map them to conflicts.
    """
    try:
        yield
    except IntegrityError:
        raise
    except (DBAPIError, PoolTimeoutError) as exc:
        logger.exception("Timetable store operation failed")
        db.rollback()
        raise StoreUnavailable() from exc


class TimetableEntryStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, entry_id: str) -> TimetableEntry | None:
        return self.db.get(TimetableEntry, entry_id)

    def find_overlapping(
        self,
        *,
        semester_id: str,
        day_of_week: DayOfWeek,
        start_time: str,
        end_time: str,
        classroom_id: str,
        teacher_id: str,
    ) -> list[TimetableEntry]:
        # Zero-padded HH:MM strings sort in time order, so the overlap test runs in SQL.
        stmt = select(TimetableEntry).where(
            TimetableEntry.is_active.is_(True),
            TimetableEntry.semester_id == semester_id,
            TimetableEntry.day_of_week == day_of_week,
            or_(TimetableEntry.classroom_id == classroom_id, TimetableEntry.teacher_id == teacher_id),
            TimetableEntry.start_time < end_time,
            TimetableEntry.end_time > start_time,
        )
        return list(self.db.execute(stmt.order_by(TimetableEntry.start_time, TimetableEntry.id)).scalars())

    def scan(
        self,
        *,
        teacher_id: str | None = None,
        classroom_id: str | None = None,
        semester_id: str | None = None,
        day_of_week: DayOfWeek | None = None,
        include_inactive: bool = False,
    ) -> list[TimetableEntry]:
        stmt = select(TimetableEntry)
        if not include_inactive:
            stmt = stmt.where(TimetableEntry.is_active.is_(True))
        if teacher_id is not None:
            stmt = stmt.where(TimetableEntry.teacher_id == teacher_id)
        if classroom_id is not None:
            stmt = stmt.where(TimetableEntry.classroom_id == classroom_id)
        if semester_id is not None:
            stmt = stmt.where(TimetableEntry.semester_id == semester_id)
        if day_of_week is not None:
            stmt = stmt.where(TimetableEntry.day_of_week == day_of_week)
        return list(self.db.execute(stmt.order_by(TimetableEntry.start_time, TimetableEntry.id)).scalars())

    def starting_between(
        self,
        *,
        semester_id: str,
        day_of_week: DayOfWeek,
        window_start: str,
        window_end: str,
    ) -> list[TimetableEntry]:
        stmt = select(TimetableEntry).where(
            TimetableEntry.is_active.is_(True),
            TimetableEntry.semester_id == semester_id,
            TimetableEntry.day_of_week == day_of_week,
            TimetableEntry.start_time >= window_start,
            TimetableEntry.start_time <= window_end,
        )
        return list(self.db.execute(stmt.order_by(TimetableEntry.start_time, TimetableEntry.id)).scalars())

    def add(self, entry: TimetableEntry) -> TimetableEntry:
        self.db.add(entry)
        return entry
