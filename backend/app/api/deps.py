from collections.abc import Callable, Generator, Iterable
from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.security import decode_token
from app.db.session import SessionLocal
from app.schemas.user import CurrentUser, UserRole
from app.services.conflict_service import ConflictService
from app.services.slot_locks import slot_locks
from app.services.time_grid import TimeGrid

security = HTTPBearer()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> CurrentUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(credentials.credentials)
        return CurrentUser(id=payload.get("sub") or "", role=payload.get("role"))
    except (JWTError, ValidationError) as exc:
        raise credentials_exception from exc


def require_roles(*roles: UserRole) -> Callable[[CurrentUser], CurrentUser]:
    allowed_roles: Iterable[UserRole] = set(roles)

    def role_checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return role_checker


@lru_cache
def get_time_grid() -> TimeGrid:
    return TimeGrid.from_settings(get_settings())


def get_conflict_service(db: Session = Depends(get_db)) -> ConflictService:
    return ConflictService(
        db,
        grid=get_time_grid(),
        locks=slot_locks,
        isolation_level=get_settings().proposal_isolation_level,
    )
