from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.schemas.semester import SemesterCreate, SemesterListResponse, SemesterOut, SemesterResponse
from app.schemas.user import CurrentUser, UserRole
from app.services.semesters import activate_semester, create_semester, list_semesters

router = APIRouter()


@router.get("", response_model=SemesterListResponse)
def get_semesters(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SemesterListResponse:
    return SemesterListResponse(semesters=[SemesterOut.model_validate(item) for item in list_semesters(db)])


@router.post("", response_model=SemesterResponse, status_code=status.HTTP_201_CREATED)
def post_semester(
    payload: SemesterCreate,
    current_user: CurrentUser = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> SemesterResponse:
    semester = create_semester(db, payload, actor=current_user)
    return SemesterResponse(semester=SemesterOut.model_validate(semester))


@router.post("/{semester_id}/activate", response_model=SemesterResponse)
def post_activate_semester(
    semester_id: str,
    current_user: CurrentUser = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> SemesterResponse:
    semester = activate_semester(db, semester_id, actor=current_user)
    return SemesterResponse(semester=SemesterOut.model_validate(semester))
