from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_conflict_service, get_current_user, require_roles
from app.core.config import get_settings
from app.schemas.timetable import (
    BatchUpdateRequest,
    BatchUpdateResponse,
    TimetableEntryCreate,
    TimetableEntryOut,
    TimetableEntryResponse,
    TimetableListResponse,
    UpcomingResponse,
)
from app.schemas.user import CurrentUser, UserRole
from app.services.conflict_service import ConflictService

router = APIRouter()

settings = get_settings()

SCHEDULER_ROLES = (UserRole.admin, UserRole.principal, UserRole.hod)


@router.get("", response_model=TimetableListResponse)
def list_timetables(
    teacher: str | None = Query(default=None),
    classroom: str | None = Query(default=None),
    semester: str | None = Query(default=None),
    day: str | None = Query(default=None),
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    current_user: CurrentUser = Depends(get_current_user),
    service: ConflictService = Depends(get_conflict_service),
) -> TimetableListResponse:
    entries = service.query_entries(
        teacher_id=teacher,
        classroom_id=classroom,
        semester_id=semester,
        day_of_week=day,
        include_inactive=include_inactive,
    )
    return TimetableListResponse(timetables=[TimetableEntryOut.model_validate(entry) for entry in entries])


@router.post("", response_model=TimetableEntryResponse, status_code=status.HTTP_201_CREATED)
def propose_timetable_entry(
    payload: TimetableEntryCreate,
    current_user: CurrentUser = Depends(require_roles(*SCHEDULER_ROLES)),
    service: ConflictService = Depends(get_conflict_service),
) -> TimetableEntryResponse:
    entry = service.propose_entry(payload, actor=current_user)
    return TimetableEntryResponse(timetable=TimetableEntryOut.model_validate(entry))


@router.put("", response_model=BatchUpdateResponse)
def batch_update_timetables(
    payload: BatchUpdateRequest,
    current_user: CurrentUser = Depends(require_roles(*SCHEDULER_ROLES)),
    service: ConflictService = Depends(get_conflict_service),
) -> BatchUpdateResponse:
    results = service.batch_update(payload.timetables, actor=current_user)
    updated = sum(1 for result in results if result.status == "updated")
    return BatchUpdateResponse(results=results, updated=updated, failed=len(results) - updated)


@router.get("/upcoming", response_model=UpcomingResponse)
def upcoming_timetables(
    semester: str | None = Query(default=None),
    horizon_minutes: int | None = Query(default=None, alias="horizonMinutes"),
    now: datetime | None = Query(default=None),
    current_user: CurrentUser = Depends(require_roles(UserRole.admin, UserRole.principal)),
    service: ConflictService = Depends(get_conflict_service),
) -> UpcomingResponse:
    if now is None:
        tz = ZoneInfo(settings.schedule_timezone) if settings.schedule_timezone else None
        now = datetime.now(tz)
    horizon = settings.upcoming_horizon_minutes if horizon_minutes is None else horizon_minutes
    upcoming = service.retrieve_upcoming(now, horizon, semester)
    return UpcomingResponse(
        day=upcoming.day,
        window_start=upcoming.window_start,
        window_end=upcoming.window_end,
        semester=upcoming.semester_id,
        timetables=[TimetableEntryOut.model_validate(entry) for entry in upcoming.entries],
    )


@router.post("/{entry_id}/deactivate", response_model=TimetableEntryResponse)
def deactivate_timetable_entry(
    entry_id: str,
    current_user: CurrentUser = Depends(require_roles(*SCHEDULER_ROLES)),
    service: ConflictService = Depends(get_conflict_service),
) -> TimetableEntryResponse:
    entry = service.deactivate(entry_id, actor=current_user)
    return TimetableEntryResponse(timetable=TimetableEntryOut.model_validate(entry))
