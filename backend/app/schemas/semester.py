from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator


class SemesterCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    is_active: bool = Field(default=False, alias="isActive")

    model_config = {"populate_by_name": True}

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Name cannot be empty")
        return trimmed


class SemesterOut(BaseModel):
    id: str
    name: str
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    is_active: bool = Field(alias="isActive")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True, "from_attributes": True}


class SemesterResponse(BaseModel):
    semester: SemesterOut


class SemesterListResponse(BaseModel):
    semesters: list[SemesterOut]
