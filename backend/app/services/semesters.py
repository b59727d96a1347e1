from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidDateRange, ResourceNotFoundError, SemesterActivationConflict
from app.models.semester import Semester
from app.schemas.semester import SemesterCreate
from app.schemas.user import CurrentUser
from app.services.audit import log_activity
from app.services.entry_store import store_errors

logger = logging.getLogger(__name__)


def list_semesters(db: Session) -> list[Semester]:
    with store_errors(db):
        return list(db.execute(select(Semester).order_by(Semester.start_date.desc())).scalars())


def get_active_semester(db: Session) -> Semester | None:
    with store_errors(db):
        return db.execute(select(Semester).where(Semester.is_active.is_(True))).scalar_one_or_none()


def _switch_active(db: Session, semester_id: str) -> None:
    # Clear first: the single-active index is checked row by row.
    db.execute(
        update(Semester)
        .where(Semester.is_active.is_(True), Semester.id != semester_id)
        .values(is_active=False)
    )
    db.execute(update(Semester).where(Semester.id == semester_id).values(is_active=True))


@contextmanager
def _activation_guard(db: Session, semester_id: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        # uq_semesters_single_active: a concurrent activation won.
        db.rollback()
        logger.warning("Activation of semester %s lost to a concurrent activation", semester_id)
        raise SemesterActivationConflict(semester_id) from exc


def create_semester(db: Session, payload: SemesterCreate, *, actor: CurrentUser | None = None) -> Semester:
    if payload.end_date <= payload.start_date:
        raise InvalidDateRange()
    semester = Semester(
        name=payload.name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_active=False,
    )
    with store_errors(db):
        db.add(semester)
        db.flush()
        with _activation_guard(db, semester.id):
            if payload.is_active:
                _switch_active(db, semester.id)
            log_activity(
                db,
                actor=actor,
                action="semester.create",
                entity_type="semester",
                entity_id=semester.id,
                details={"name": semester.name, "is_active": payload.is_active},
            )
            db.commit()
        db.refresh(semester)
    return semester


def activate_semester(db: Session, semester_id: str, *, actor: CurrentUser | None = None) -> Semester:
    """Make ``semester_id`` the only active semester, in one transaction."""
    with store_errors(db):
        semester = db.get(Semester, semester_id)
        if semester is None:
            raise ResourceNotFoundError("Semester", semester_id)
        with _activation_guard(db, semester_id):
            _switch_active(db, semester_id)
            log_activity(
                db,
                actor=actor,
                action="semester.activate",
                entity_type="semester",
                entity_id=semester_id,
            )
            db.commit()
        db.refresh(semester)
    logger.info("Semester %s is now the active semester", semester_id)
    return semester
