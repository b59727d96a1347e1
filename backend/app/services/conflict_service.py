from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging
import uuid

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    ClassroomConflict,
    InvalidFilter,
    InvalidTimeRange,
    MissingReference,
    ResourceNotFoundError,
    SchedulingConflict,
    StoreUnavailable,
    TeacherConflict,
)
from app.models.timetable_entry import DayOfWeek, TimetableEntry
from app.schemas.timetable import (
    BatchItemResult,
    BatchUpdateItem,
    TimetableEntryCreate,
    TimetableEntryOut,
)
from app.schemas.user import CurrentUser
from app.services.audit import log_activity
from app.services.entry_store import TimetableEntryStore, store_errors
from app.services.semesters import get_active_semester
from app.services.time_grid import MINUTES_PER_DAY, TimeGrid, format_minutes
from app.services.slot_locks import SlotLockRegistry, slot_locks

logger = logging.getLogger(__name__)

REFERENCE_FIELDS = {
    "teacher_id": "teacher",
    "subject_id": "subject",
    "classroom_id": "classroom",
    "semester_id": "semester",
}

# Index matches datetime.weekday(); Sunday has no teaching day.
WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

SERIALIZATION_FAILURE = "40001"


def is_serialization_failure(exc: OperationalError) -> bool:
    # psycopg 3 exposes sqlstate, psycopg2 pgcode.
    code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    return code == SERIALIZATION_FAILURE


def entry_snapshot(entry: TimetableEntry) -> dict:
    return TimetableEntryOut.model_validate(entry).model_dump(mode="json", by_alias=True)


@dataclass
class UpcomingClasses:
    day: str
    window_start: str
    window_end: str
    semester_id: str | None
    entries: list[TimetableEntry] = field(default_factory=list)


class ConflictService:
    """Guards the no-overlap invariant for active entries within a semester.

    An entry conflicts with an existing active entry of the same semester and
    day when the two share a classroom or a teacher and their ``[start, end)``
    ranges overlap. Classroom clashes are reported before teacher clashes.
    """

    def __init__(
        self,
        db: Session,
        *,
        grid: TimeGrid | None = None,
        locks: SlotLockRegistry | None = None,
        isolation_level: str | None = None,
    ) -> None:
        self.db = db
        self.store = TimetableEntryStore(db)
        self.grid = grid or TimeGrid()
        self.locks = locks or slot_locks
        self.isolation_level = isolation_level

    # Validation

    def _require_references(self, values: dict[str, str | None]) -> None:
        missing = [
            label
            for key, label in REFERENCE_FIELDS.items()
            if values.get(key) is None or not str(values.get(key)).strip()
        ]
        if missing:
            raise MissingReference(missing)

    # Conflict detection

    def find_conflict(self, candidate: TimetableEntryCreate) -> SchedulingConflict | None:
        rows = self.store.find_overlapping(
            semester_id=candidate.semester_id,
            day_of_week=candidate.day_of_week,
            start_time=candidate.start_time,
            end_time=candidate.end_time,
            classroom_id=candidate.classroom_id,
            teacher_id=candidate.teacher_id,
        )
        for row in rows:
            if row.classroom_id == candidate.classroom_id:
                return ClassroomConflict(row, entry_snapshot(row))
        for row in rows:
            if row.teacher_id == candidate.teacher_id:
                return TeacherConflict(row, entry_snapshot(row))
        return None

    def _lock_keys(self, candidate: TimetableEntryCreate) -> list[tuple[str, ...]]:
        day = candidate.day_of_week.value
        return [
            ("classroom", candidate.classroom_id, candidate.semester_id, day),
            ("teacher", candidate.teacher_id, candidate.semester_id, day),
        ]

    def _begin_proposal(self) -> None:
        if self.isolation_level:
            self.db.connection(execution_options={"isolation_level": self.isolation_level})

    def propose_entry(
        self,
        candidate: TimetableEntryCreate,
        *,
        actor: CurrentUser | None = None,
    ) -> TimetableEntry:
        self.grid.validate_range(candidate.start_time, candidate.end_time)
        self._require_references(candidate.model_dump())

        if not candidate.is_active:
            # Inactive entries never take part in the invariant.
            return self._insert(candidate, actor=actor)

        with self.locks.hold(self._lock_keys(candidate)):
            with store_errors(self.db):
                self._begin_proposal()
                conflict = self.find_conflict(candidate)
                if conflict is not None:
                    self.db.rollback()
                    self._log_rejection(candidate, conflict)
                    raise conflict
                return self._insert(candidate, actor=actor)

    def _insert(self, candidate: TimetableEntryCreate, *, actor: CurrentUser | None) -> TimetableEntry:
        entry = TimetableEntry(id=str(uuid.uuid4()), **candidate.model_dump())
        with store_errors(self.db):
            self.store.add(entry)
            log_activity(
                self.db,
                actor=actor,
                action="timetable.propose",
                entity_type="timetable_entry",
                entity_id=entry.id,
                details={
                    "classroom": entry.classroom_id,
                    "teacher": entry.teacher_id,
                    "semester": entry.semester_id,
                    "day": entry.day_of_week.value,
                    "start_time": entry.start_time,
                    "end_time": entry.end_time,
                },
            )
            try:
                self.db.commit()
            except (IntegrityError, OperationalError) as exc:
                if isinstance(exc, OperationalError) and not is_serialization_failure(exc):
                    raise
                # Another writer took the slot between our check and insert.
                self.db.rollback()
                conflict = self.find_conflict(candidate)
                if conflict is not None:
                    self._log_rejection(candidate, conflict)
                    raise conflict from exc
                logger.exception("Timetable store rejected entry %s", entry.id)
                raise StoreUnavailable("Timetable store rejected the write") from exc
            self.db.refresh(entry)
        logger.info(
            "Scheduled entry %s: classroom=%s teacher=%s %s %s-%s semester=%s",
            entry.id,
            entry.classroom_id,
            entry.teacher_id,
            entry.day_of_week.value,
            entry.start_time,
            entry.end_time,
            entry.semester_id,
        )
        return entry

    def _log_rejection(self, candidate: TimetableEntryCreate, conflict: SchedulingConflict) -> None:
        logger.info(
            "Rejected proposal on %s axis: %s %s-%s semester=%s blocked by entry %s",
            conflict.axis,
            candidate.day_of_week.value,
            candidate.start_time,
            candidate.end_time,
            candidate.semester_id,
            conflict.details["conflict"]["id"],
        )

    # Queries

    def query_entries(
        self,
        *,
        teacher_id: str | None = None,
        classroom_id: str | None = None,
        semester_id: str | None = None,
        day_of_week: DayOfWeek | str | None = None,
        include_inactive: bool = False,
    ) -> list[TimetableEntry]:
        for label, value in (("teacher", teacher_id), ("classroom", classroom_id), ("semester", semester_id)):
            if value is not None and not value.strip():
                raise InvalidFilter(f"{label} filter cannot be blank", details={"field": label})
        day = None
        if day_of_week is not None:
            try:
                day = DayOfWeek(day_of_week)
            except ValueError as exc:
                raise InvalidFilter(
                    f"Invalid day filter {day_of_week!r}",
                    details={"field": "day", "allowed": [member.value for member in DayOfWeek]},
                ) from exc
        with store_errors(self.db):
            return self.store.scan(
                teacher_id=teacher_id,
                classroom_id=classroom_id,
                semester_id=semester_id,
                day_of_week=day,
                include_inactive=include_inactive,
            )

    def retrieve_upcoming(
        self,
        now: datetime,
        horizon_minutes: int,
        semester_id: str | None = None,
    ) -> UpcomingClasses:
        """Active entries of today starting within ``[now, now + horizon]``."""
        if horizon_minutes < 0:
            raise InvalidFilter("horizonMinutes cannot be negative", details={"field": "horizonMinutes"})

        day_name = WEEKDAY_NAMES[now.weekday()]
        start_minutes = now.hour * 60 + now.minute
        end_minutes = min(start_minutes + horizon_minutes, MINUTES_PER_DAY - 1)
        upcoming = UpcomingClasses(
            day=day_name,
            window_start=format_minutes(start_minutes),
            window_end=format_minutes(end_minutes),
            semester_id=semester_id,
        )

        if semester_id is None:
            with store_errors(self.db):
                active = get_active_semester(self.db)
            if active is None:
                return upcoming
            upcoming.semester_id = active.id
        elif not semester_id.strip():
            raise InvalidFilter("semester filter cannot be blank", details={"field": "semester"})

        try:
            day = DayOfWeek(day_name)
        except ValueError:
            return upcoming

        with store_errors(self.db):
            upcoming.entries = self.store.starting_between(
                semester_id=upcoming.semester_id,
                day_of_week=day,
                window_start=upcoming.window_start,
                window_end=upcoming.window_end,
            )
        return upcoming

    # Mutations

    def batch_update(
        self,
        items: list[BatchUpdateItem],
        *,
        actor: CurrentUser | None = None,
    ) -> list[BatchItemResult]:
        """Apply partial updates item by item.

        Each item commits on its own. Overlaps are not re-checked here, so a
        moved entry can end up overlapping another active entry; only exact
        duplicate active slots are refused by the store.
        """
        return [self._apply_update(item, actor=actor) for item in items]

    def _apply_update(self, item: BatchUpdateItem, *, actor: CurrentUser | None) -> BatchItemResult:
        changes = item.changes()
        with store_errors(self.db):
            entry = self.store.get(item.id)
            if entry is None:
                return BatchItemResult(id=item.id, status="not_found", error=f"Timetable entry {item.id} not found")

            merged = {key: changes.get(key, getattr(entry, key)) for key in REFERENCE_FIELDS}
            try:
                self.grid.validate_range(
                    changes.get("start_time", entry.start_time),
                    changes.get("end_time", entry.end_time),
                )
                self._require_references(merged)
            except (InvalidTimeRange, MissingReference) as exc:
                self.db.rollback()
                return BatchItemResult(id=item.id, status="invalid", error=exc.message)

            for key, value in changes.items():
                setattr(entry, key, value)
            log_activity(
                self.db,
                actor=actor,
                action="timetable.batch_update",
                entity_type="timetable_entry",
                entity_id=entry.id,
                details={key: getattr(value, "value", value) for key, value in changes.items()},
            )
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.info("Batch update of entry %s collided with an active slot", item.id)
                return BatchItemResult(
                    id=item.id,
                    status="rejected",
                    error="Another active entry already occupies this exact slot",
                )
            self.db.refresh(entry)
        return BatchItemResult(
            id=item.id,
            status="updated",
            timetable=TimetableEntryOut.model_validate(entry),
        )

    def deactivate(self, entry_id: str, *, actor: CurrentUser | None = None) -> TimetableEntry:
        with store_errors(self.db):
            entry = self.store.get(entry_id)
            if entry is None:
                raise ResourceNotFoundError("Timetable entry", entry_id)
            if not entry.is_active:
                return entry
            entry.is_active = False
            log_activity(
                self.db,
                actor=actor,
                action="timetable.deactivate",
                entity_type="timetable_entry",
                entity_id=entry.id,
            )
            self.db.commit()
            self.db.refresh(entry)
        logger.info("Deactivated entry %s", entry_id)
        return entry
