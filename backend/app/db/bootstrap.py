from __future__ import annotations

import logging

from sqlalchemy import inspect

from app.db.base import Base
from app.db.session import engine
from app.models.timetable_entry import CLASSROOM_SLOT_INDEX, TEACHER_SLOT_INDEX, TimetableEntry
import app.models  # noqa: F401

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "timetable_entries": {
        "id",
        "teacher_id",
        "subject_id",
        "classroom_id",
        "semester_id",
        "day_of_week",
        "start_time",
        "end_time",
        "is_active",
        "created_at",
        "updated_at",
    },
    "semesters": {"id", "name", "start_date", "end_date", "is_active"},
    "activity_logs": {"id", "action", "entity_type", "entity_id", "details"},
}

# The conflict engine depends on these to reject a losing concurrent writer.
REQUIRED_UNIQUE_INDEXES: dict[str, set[str]] = {
    "timetable_entries": {CLASSROOM_SLOT_INDEX, TEACHER_SLOT_INDEX},
}


def _ensure_slot_indexes() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "timetable_entries" not in set(inspector.get_table_names()):
            return
        existing = {item["name"] for item in inspector.get_indexes("timetable_entries")}
        for index in TimetableEntry.__table__.indexes:
            if index.unique and index.name not in existing:
                logger.warning("Creating missing unique index %s", index.name)
                index.create(bind=connection, checkfirst=True)


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")

        missing_indexes: list[str] = []
        for table_name, required in REQUIRED_UNIQUE_INDEXES.items():
            existing = {item["name"] for item in inspector.get_indexes(table_name) if item.get("unique")}
            missing_indexes.extend(f"{table_name}.{name}" for name in sorted(required - existing))
        if missing_indexes:
            raise RuntimeError(f"Missing required unique indexes: {', '.join(missing_indexes)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        _ensure_slot_indexes()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
