"""
Exam record access for the School Grades system.

Raw lookups (``find_*``) take an explicit ScopeFilter so the statistics
code can reuse them; caller-facing helpers resolve the scope themselves.
"""
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_logger
from database import Exam, ExamStatus, ExamType, Semester
from .authorization import CallerScope, ResourceKind, ScopeFilter, ensure_visible, scope_for
from .class_names import normalize_class_name
from .exceptions import NotFoundError, ValidationError

logger = get_logger(__name__)

UPDATABLE_EXAM_FIELDS = frozenset({
    "name", "subject", "class_name", "exam_date", "total_score",
    "exam_type", "status", "semester_id",
})


async def _validate_exam_fields(
    db: AsyncSession,
    exam_type: str,
    status: str,
    total_score: float,
    semester_id: Optional[int],
) -> None:
    if exam_type not in {t.value for t in ExamType}:
        raise ValidationError(f"Invalid exam type '{exam_type}'", field="exam_type")
    if status not in {s.value for s in ExamStatus}:
        raise ValidationError(f"Invalid exam status '{status}'", field="status")
    if total_score is None or total_score <= 0:
        raise ValidationError("Total score must be positive", field="total_score")
    if semester_id is not None and await db.get(Semester, semester_id) is None:
        raise NotFoundError("Semester", semester_id)


async def find_exam_by_id(db: AsyncSession, exam_id: int) -> Optional[Exam]:
    return await db.get(Exam, exam_id)


async def get_exam(db: AsyncSession, caller: CallerScope, exam_id: int) -> Exam:
    """
    Fetch one exam the caller may see.

    Raises:
        NotFoundError: If the exam is missing or outside the caller's scope
    """
    exam = await find_exam_by_id(db, exam_id)
    return ensure_visible(caller, exam, ResourceKind.EXAM, "Exam", exam_id)


async def find_exams_by_semester(
    db: AsyncSession,
    semester_id: int,
    scope: ScopeFilter,
    class_name: Optional[str] = None,
) -> List[Exam]:
    """Exams of a semester inside ``scope``, oldest first."""
    stmt = select(Exam).where(Exam.semester_id == semester_id)
    if class_name:
        stmt = stmt.where(Exam.class_name == class_name)
    stmt = scope.apply(stmt).order_by(Exam.exam_date.asc(), Exam.id.asc())

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def find_exams_by_subject(
    db: AsyncSession,
    subject: str,
    scope: ScopeFilter,
    semester_id: Optional[int] = None,
    class_name: Optional[str] = None,
) -> List[Exam]:
    """Exams of one subject inside ``scope``, oldest first."""
    stmt = select(Exam).where(Exam.subject == subject)
    if semester_id is not None:
        stmt = stmt.where(Exam.semester_id == semester_id)
    if class_name:
        stmt = stmt.where(Exam.class_name == class_name)
    stmt = scope.apply(stmt).order_by(Exam.exam_date.asc(), Exam.id.asc())

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def find_sibling_exams(
    db: AsyncSession,
    subject: str,
    exam_date: Optional[date] = None,
    semester_id: Optional[int] = None,
) -> List[Exam]:
    """
    Exams sharing a subject with a reference exam, and either its date or
    its semester. The reference exam itself is included.
    """
    if exam_date is None and semester_id is None:
        raise ValidationError("Sibling lookup needs an exam date or a semester", field="exam_date")

    stmt = select(Exam).where(Exam.subject == subject)
    if exam_date is not None:
        stmt = stmt.where(Exam.exam_date == exam_date)
    if semester_id is not None:
        stmt = stmt.where(Exam.semester_id == semester_id)
    stmt = stmt.order_by(Exam.class_name.asc(), Exam.id.asc())

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_exams(
    db: AsyncSession,
    caller: CallerScope,
    class_name: Optional[str] = None,
    semester_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    List the exams a caller may see, newest first.
    An empty scope yields an empty list rather than an error.
    """
    stmt = select(Exam)
    if class_name:
        stmt = stmt.where(Exam.class_name == class_name)
    if semester_id is not None:
        stmt = stmt.where(Exam.semester_id == semester_id)
    stmt = scope_for(caller, ResourceKind.EXAM).apply(stmt)
    stmt = stmt.order_by(Exam.exam_date.desc(), Exam.id.desc())

    result = await db.execute(stmt)
    return [e.to_dict() for e in result.scalars().all()]


async def create_exam(
    db: AsyncSession,
    caller: CallerScope,
    name: str,
    subject: str,
    class_name: str,
    exam_date: date,
    total_score: float = 100,
    exam_type: str = ExamType.OTHER.value,
    status: str = ExamStatus.NOT_STARTED.value,
    semester_id: Optional[int] = None,
    normalize: Callable[[str], Tuple[str, str]] = normalize_class_name,
) -> Exam:
    """
    Create an exam owned by the caller.

    Raises:
        ValidationError: If the type, status or total score is invalid
        NotFoundError: If the semester does not exist
    """
    await _validate_exam_fields(db, exam_type, status, total_score, semester_id)

    canonical, _ = normalize(class_name)
    exam = Exam(
        name=name,
        subject=subject,
        class_name=canonical or class_name,
        exam_date=exam_date,
        total_score=total_score,
        exam_type=exam_type,
        status=status,
        teacher_id=caller.user_id,
        semester_id=semester_id,
    )
    db.add(exam)
    await db.commit()
    await db.refresh(exam)

    logger.info(f"Created exam {exam.id} ({subject}, {exam.class_name}) for user {caller.user_id}")
    return exam


async def delete_exam(db: AsyncSession, caller: CallerScope, exam_id: int) -> None:
    """
    Delete an exam the caller may see. Its scores go with it.

    Raises:
        NotFoundError: If the exam is missing or outside the caller's scope
    """
    exam = await get_exam(db, caller, exam_id)
    await db.delete(exam)
    await db.commit()
    logger.info(f"Deleted exam {exam_id}")


async def update_exam(
    db: AsyncSession,
    caller: CallerScope,
    exam_id: int,
    normalize: Callable[[str], Tuple[str, str]] = normalize_class_name,
    **changes,
) -> Exam:
    """
    Change fields of a visible exam. Ownership never changes.

    Raises:
        NotFoundError: If the exam or the new semester is missing, or the
            exam is outside the caller's scope
        ValidationError: If a field is unknown or the new values are invalid
    """
    exam = await get_exam(db, caller, exam_id)

    unknown = set(changes) - UPDATABLE_EXAM_FIELDS
    if unknown:
        raise ValidationError(f"Unknown exam fields: {', '.join(sorted(unknown))}", field="exam")
    changes = {key: value for key, value in changes.items() if value is not None}

    await _validate_exam_fields(
        db,
        changes.get("exam_type", exam.exam_type),
        changes.get("status", exam.status),
        changes.get("total_score", exam.total_score),
        changes.get("semester_id"),
    )
    if "class_name" in changes:
        canonical, _ = normalize(changes["class_name"])
        changes["class_name"] = canonical or changes["class_name"]

    for key, value in changes.items():
        setattr(exam, key, value)
    await db.commit()
    await db.refresh(exam)

    logger.info(f"User {caller.user_id} updated exam {exam_id}: {', '.join(sorted(changes))}")
    return exam
