"""
Semester management.

At most one semester is current. Whenever one is marked current, every
other semester is cleared in the same transaction first.
"""
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_logger
from database import Semester
from .exceptions import NotFoundError, ValidationError

logger = get_logger(__name__)


async def _clear_current(db: AsyncSession) -> None:
    await db.execute(
        update(Semester).where(Semester.is_current.is_(True)).values(is_current=False)
    )


def _check_dates(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ValidationError("Semester end date is before its start date", field="end_date")


async def get_semester(db: AsyncSession, semester_id: int) -> Semester:
    semester = await db.get(Semester, semester_id)
    if semester is None:
        raise NotFoundError("Semester", semester_id)
    return semester


async def list_semesters(db: AsyncSession) -> List[Dict[str, Any]]:
    """All semesters, most recent first."""
    result = await db.execute(select(Semester).order_by(Semester.start_date.desc()))
    return [s.to_dict() for s in result.scalars().all()]


async def get_current_semester(db: AsyncSession) -> Semester:
    result = await db.execute(select(Semester).where(Semester.is_current.is_(True)))
    semester = result.scalars().first()
    if semester is None:
        raise NotFoundError("Current semester")
    return semester


async def create_semester(
    db: AsyncSession,
    name: str,
    school_year: str,
    start_date: date,
    end_date: date,
    is_current: bool = False,
) -> Semester:
    _check_dates(start_date, end_date)

    if is_current:
        await _clear_current(db)

    semester = Semester(
        name=name,
        school_year=school_year,
        start_date=start_date,
        end_date=end_date,
        is_current=is_current,
    )
    db.add(semester)
    await db.commit()
    await db.refresh(semester)

    logger.info(f"Created semester {semester.id} ({name}, current={is_current})")
    return semester


async def update_semester(
    db: AsyncSession,
    semester_id: int,
    name: Optional[str] = None,
    school_year: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    is_current: Optional[bool] = None,
) -> Semester:
    semester = await get_semester(db, semester_id)

    if name is not None:
        semester.name = name
    if school_year is not None:
        semester.school_year = school_year
    if start_date is not None:
        semester.start_date = start_date
    if end_date is not None:
        semester.end_date = end_date
    _check_dates(semester.start_date, semester.end_date)

    if is_current:
        await _clear_current(db)
    if is_current is not None:
        semester.is_current = is_current

    await db.commit()
    await db.refresh(semester)
    return semester


async def set_current_semester(db: AsyncSession, semester_id: int) -> Semester:
    """Make one semester current and clear the flag everywhere else."""
    semester = await get_semester(db, semester_id)

    await _clear_current(db)
    semester.is_current = True
    await db.commit()
    await db.refresh(semester)

    logger.info(f"Semester {semester_id} is now current")
    return semester


async def delete_semester(db: AsyncSession, semester_id: int) -> None:
    """Delete a semester. Its exams stay, detached from any semester."""
    semester = await get_semester(db, semester_id)
    await db.delete(semester)
    await db.commit()
    logger.info(f"Deleted semester {semester_id}")
