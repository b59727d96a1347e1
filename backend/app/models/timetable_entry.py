import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class DayOfWeek(str, Enum):
    monday = "Monday"
    tuesday = "Tuesday"
    wednesday = "Wednesday"
    thursday = "Thursday"
    friday = "Friday"
    saturday = "Saturday"


ACTIVE_ONLY = text("is_active")

CLASSROOM_SLOT_INDEX = "uq_timetable_entries_active_classroom_slot"
TEACHER_SLOT_INDEX = "uq_timetable_entries_active_teacher_slot"


class TimetableEntry(Base):
    __tablename__ = "timetable_entries"
    __table_args__ = (
        # Store-level guard against two writers booking the exact same active slot.
        Index(
            CLASSROOM_SLOT_INDEX,
            "classroom_id",
            "day_of_week",
            "start_time",
            "end_time",
            "semester_id",
            unique=True,
            sqlite_where=ACTIVE_ONLY,
            postgresql_where=ACTIVE_ONLY,
        ),
        Index(
            TEACHER_SLOT_INDEX,
            "teacher_id",
            "day_of_week",
            "start_time",
            "end_time",
            "semester_id",
            unique=True,
            sqlite_where=ACTIVE_ONLY,
            postgresql_where=ACTIVE_ONLY,
        ),
        Index("ix_timetable_entries_semester_day", "semester_id", "day_of_week"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    teacher_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    classroom_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    semester_id: Mapped[str] = mapped_column(String(64), nullable=False)
    day_of_week: Mapped[DayOfWeek] = mapped_column(
        SAEnum(DayOfWeek, name="day_of_week", values_callable=lambda members: [m.value for m in members]),
        nullable=False,
    )
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
