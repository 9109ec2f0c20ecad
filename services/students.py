"""
Student record access for the School Grades system.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_logger
from database import Student
from .authorization import CallerScope, ResourceKind, ensure_visible, scope_for
from .class_names import normalize_class_name
from .classes import Normalizer, get_or_create_class
from .exceptions import ValidationError

logger = get_logger(__name__)


@dataclass(frozen=True)
class StudentEntry:
    """One row of a student import."""
    name: str
    student_number: str
    class_name: str


async def find_student_by_id(db: AsyncSession, student_id: int) -> Optional[Student]:
    return await db.get(Student, student_id)


async def _find_by_numbers(db: AsyncSession, numbers: Sequence[str]) -> List[str]:
    result = await db.execute(
        select(Student.student_number).where(Student.student_number.in_(list(numbers)))
    )
    return list(result.scalars().all())


async def get_student(db: AsyncSession, caller: CallerScope, student_id: int) -> Student:
    """
    Fetch one student the caller may see.

    Raises:
        NotFoundError: If the student is missing or outside the caller's scope
    """
    student = await find_student_by_id(db, student_id)
    return ensure_visible(caller, student, ResourceKind.STUDENT, "Student", student_id)


async def list_students(
    db: AsyncSession,
    caller: CallerScope,
    class_name: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """List the students a caller may see, ordered by student number."""
    stmt = select(Student)
    if class_name:
        stmt = stmt.where(Student.class_name == class_name)
    stmt = scope_for(caller, ResourceKind.STUDENT).apply(stmt).order_by(Student.student_number)

    result = await db.execute(stmt)
    return [s.to_dict() for s in result.scalars().all()]


async def create_student(
    db: AsyncSession,
    caller: CallerScope,
    name: str,
    student_number: str,
    class_name: str,
    normalize: Normalizer = normalize_class_name,
) -> Student:
    """
    Create a student owned by the caller.

    Raises:
        ValidationError: If the student number is already used
    """
    (student,) = await import_students(
        db, caller, [StudentEntry(name, student_number, class_name)], normalize
    )
    return student


async def import_students(
    db: AsyncSession,
    caller: CallerScope,
    entries: Sequence[StudentEntry],
    normalize: Normalizer = normalize_class_name,
) -> List[Student]:
    """
    Create many students owned by the caller in one transaction.

    Classes named by the rows are created as needed. Nothing is written
    when any row is rejected.

    Raises:
        ValidationError: If a student number repeats within the batch or is already used
    """
    if not entries:
        return []

    seen = set()
    for item in entries:
        if item.student_number in seen:
            raise ValidationError(
                f"Student number '{item.student_number}' appears twice", field="student_number"
            )
        seen.add(item.student_number)

    taken = await _find_by_numbers(db, sorted(seen))
    if taken:
        raise ValidationError(
            f"Student number '{sorted(taken)[0]}' already exists", field="student_number"
        )

    students = []
    try:
        for item in entries:
            school_class = await get_or_create_class(db, caller, item.class_name, normalize)
            students.append(Student(
                name=item.name,
                student_number=item.student_number,
                class_name=school_class.name,
                class_id=school_class.id,
                teacher_id=caller.user_id,
            ))
        db.add_all(students)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    for student in students:
        await db.refresh(student)
    if len(students) > 1:
        logger.info(f"User {caller.user_id} imported {len(students)} students")
    return students


async def update_student(
    db: AsyncSession,
    caller: CallerScope,
    student_id: int,
    name: Optional[str] = None,
    student_number: Optional[str] = None,
    class_name: Optional[str] = None,
    normalize: Normalizer = normalize_class_name,
) -> Student:
    """
    Change a visible student's name, number or class.

    Raises:
        NotFoundError: If the student is missing or outside the caller's scope
        ValidationError: If the new student number is already used
    """
    student = await get_student(db, caller, student_id)

    if student_number is not None and student_number != student.student_number:
        if await _find_by_numbers(db, [student_number]):
            raise ValidationError(
                f"Student number '{student_number}' already exists", field="student_number"
            )

    if class_name is not None:
        school_class = await get_or_create_class(db, caller, class_name, normalize)
        student.class_name = school_class.name
        student.class_id = school_class.id
    if student_number is not None:
        student.student_number = student_number
    if name is not None:
        student.name = name

    await db.commit()
    await db.refresh(student)
    return student


async def delete_student(db: AsyncSession, caller: CallerScope, student_id: int) -> None:
    """Delete a student the caller may see. Their scores go with them."""
    student = await get_student(db, caller, student_id)
    await db.delete(student)
    await db.commit()
    logger.info(f"Deleted student {student_id}")
