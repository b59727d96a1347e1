from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

from app.models.timetable_entry import DayOfWeek


class TimetableEntryCreate(BaseModel):
    # Blank references and off-grid times are rejected by the conflict engine,
    # not here, so the caller gets the engine's typed error.
    teacher_id: str = Field(alias="teacher", max_length=64)
    subject_id: str = Field(alias="subject", max_length=64)
    classroom_id: str = Field(alias="classroom", max_length=64)
    semester_id: str = Field(alias="semester", max_length=64)
    day_of_week: DayOfWeek = Field(alias="dayOfWeek")
    start_time: str = Field(alias="startTime", max_length=5)
    end_time: str = Field(alias="endTime", max_length=5)
    is_active: bool = Field(default=True, alias="isActive")

    model_config = {"populate_by_name": True}


class TimetableEntryUpdate(BaseModel):
    teacher_id: str | None = Field(default=None, alias="teacher", max_length=64)
    subject_id: str | None = Field(default=None, alias="subject", max_length=64)
    classroom_id: str | None = Field(default=None, alias="classroom", max_length=64)
    semester_id: str | None = Field(default=None, alias="semester", max_length=64)
    day_of_week: DayOfWeek | None = Field(default=None, alias="dayOfWeek")
    start_time: str | None = Field(default=None, alias="startTime", max_length=5)
    end_time: str | None = Field(default=None, alias="endTime", max_length=5)
    is_active: bool | None = Field(default=None, alias="isActive")

    model_config = {"populate_by_name": True}

    def changes(self) -> dict:
        return {key: value for key, value in self.model_dump(exclude_unset=True).items() if value is not None}


class BatchUpdateItem(TimetableEntryUpdate):
    id: str = Field(min_length=1, max_length=36, validation_alias=AliasChoices("id", "_id"))

    def changes(self) -> dict:
        data = super().changes()
        data.pop("id", None)
        return data


class BatchUpdateRequest(BaseModel):
    timetables: list[BatchUpdateItem] = Field(min_length=1, max_length=500)


class TimetableEntryOut(BaseModel):
    id: str
    teacher_id: str = Field(alias="teacher")
    subject_id: str = Field(alias="subject")
    classroom_id: str = Field(alias="classroom")
    semester_id: str = Field(alias="semester")
    day_of_week: DayOfWeek = Field(alias="dayOfWeek")
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    is_active: bool = Field(alias="isActive")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    model_config = {"populate_by_name": True, "from_attributes": True}


class TimetableEntryResponse(BaseModel):
    timetable: TimetableEntryOut


class TimetableListResponse(BaseModel):
    timetables: list[TimetableEntryOut]


BatchItemStatus = Literal["updated", "not_found", "invalid", "rejected"]


class BatchItemResult(BaseModel):
    id: str
    status: BatchItemStatus
    timetable: TimetableEntryOut | None = None
    error: str | None = None


class BatchUpdateResponse(BaseModel):
    results: list[BatchItemResult]
    updated: int
    failed: int


class UpcomingResponse(BaseModel):
    day: str
    window_start: str = Field(alias="windowStart")
    window_end: str = Field(alias="windowEnd")
    semester: str | None = None
    timetables: list[TimetableEntryOut]

    model_config = {"populate_by_name": True}
