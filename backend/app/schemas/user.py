from enum import Enum

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    admin = "admin"
    principal = "principal"
    hod = "hod"
    teacher = "teacher"


class CurrentUser(BaseModel):
    """Caller identity taken from a verified bearer token."""

    id: str = Field(min_length=1)
    role: UserRole
