"""
Class (teaching group) management for the School Grades system.

Teachers see the classes they own or created. Only admins and grade
leaders may create, change, deactivate or delete classes by hand; any
caller may create one implicitly by enrolling a student into it.
"""
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_logger
from database import Exam, SchoolClass, Student, UserRole
from .authorization import CallerScope, ResourceKind, enforce_roles, ensure_visible, scope_for
from .class_names import normalize_class_name
from .exceptions import ValidationError

logger = get_logger(__name__)

CLASS_MANAGERS = (UserRole.ADMIN, UserRole.GRADE_LEADER)

Normalizer = Callable[[str], Tuple[str, str]]


async def _find_class_by_name(db: AsyncSession, name: str) -> Optional[SchoolClass]:
    result = await db.execute(select(SchoolClass).where(SchoolClass.name == name))
    return result.scalar_one_or_none()


async def _student_counts(db: AsyncSession, class_ids: List[int]) -> Dict[int, int]:
    if not class_ids:
        return {}
    stmt = (
        select(Student.class_id, func.count(Student.id))
        .where(Student.class_id.in_(class_ids))
        .group_by(Student.class_id)
    )
    result = await db.execute(stmt)
    return dict(result.all())


async def _with_counts(db: AsyncSession, classes: List[SchoolClass]) -> List[Dict[str, Any]]:
    counts = await _student_counts(db, [c.id for c in classes])
    return [{**c.to_dict(), "student_count": counts.get(c.id, 0)} for c in classes]


async def get_class(db: AsyncSession, caller: CallerScope, class_id: int) -> SchoolClass:
    """
    Fetch one class the caller may see.

    Raises:
        NotFoundError: If the class is missing or outside the caller's scope
    """
    school_class = await db.get(SchoolClass, class_id)
    return ensure_visible(caller, school_class, ResourceKind.SCHOOL_CLASS, "Class", class_id)


async def get_class_detail(db: AsyncSession, caller: CallerScope, class_id: int) -> Dict[str, Any]:
    """One visible class with its student count."""
    school_class = await get_class(db, caller, class_id)
    (detail,) = await _with_counts(db, [school_class])
    return detail


async def list_classes(
    db: AsyncSession,
    caller: CallerScope,
    active_only: bool = False,
) -> List[Dict[str, Any]]:
    """
    List the classes a caller may see, newest first, with student counts.
    A teacher without classes gets an empty list.
    """
    stmt = select(SchoolClass)
    if active_only:
        stmt = stmt.where(SchoolClass.is_active.is_(True))
    stmt = scope_for(caller, ResourceKind.SCHOOL_CLASS).apply(stmt)
    stmt = stmt.order_by(SchoolClass.created_at.desc(), SchoolClass.id.desc())

    result = await db.execute(stmt)
    return await _with_counts(db, list(result.scalars().all()))


async def get_or_create_class(
    db: AsyncSession,
    caller: CallerScope,
    class_name: str,
    normalize: Normalizer = normalize_class_name,
) -> SchoolClass:
    """Find the class for a label, creating it (owned by the caller) if needed."""
    canonical, grade = normalize(class_name)
    if not canonical:
        raise ValidationError("Class name is required", field="class_name")

    school_class = await _find_class_by_name(db, canonical)
    if school_class is None:
        school_class = SchoolClass(name=canonical, grade=grade, created_by=caller.user_id)
        db.add(school_class)
        await db.flush()
        logger.info(f"Created class {canonical} ({grade})")
    return school_class


async def create_class(
    db: AsyncSession,
    caller: CallerScope,
    name: str,
    grade: Optional[str] = None,
    description: Optional[str] = None,
    is_active: bool = True,
    normalize: Normalizer = normalize_class_name,
) -> SchoolClass:
    """
    Create a class. The grade is inferred from the label when not given.

    Raises:
        RoleRequiredError: If the caller is not an admin or grade leader
        ValidationError: If the label is empty or already used
    """
    enforce_roles(caller, CLASS_MANAGERS, "create_class")

    canonical, inferred_grade = normalize(name)
    if not canonical:
        raise ValidationError("Class name is required", field="name")
    if await _find_class_by_name(db, canonical) is not None:
        raise ValidationError(f"Class '{canonical}' already exists", field="name")

    school_class = SchoolClass(
        name=canonical,
        grade=grade or inferred_grade,
        description=description,
        is_active=is_active,
        created_by=caller.user_id,
    )
    db.add(school_class)
    await db.commit()
    await db.refresh(school_class)

    logger.info(f"User {caller.user_id} created class {canonical}")
    return school_class


async def update_class(
    db: AsyncSession,
    caller: CallerScope,
    class_id: int,
    normalize: Normalizer = normalize_class_name,
    **changes,
) -> SchoolClass:
    """
    Change a class's name, grade, description or active flag.

    Renaming relabels the class's students and the exams held under the
    old label. Teachers' class assignments are left as they are.

    Raises:
        RoleRequiredError: If the caller is not an admin or grade leader
        NotFoundError: If the class does not exist
        ValidationError: If the new label is empty or already used
    """
    enforce_roles(caller, CLASS_MANAGERS, "update_class")
    school_class = await get_class(db, caller, class_id)

    unknown = set(changes) - {"name", "grade", "description", "is_active"}
    if unknown:
        raise ValidationError(f"Unknown class fields: {', '.join(sorted(unknown))}", field="class")

    old_name = school_class.name
    if changes.get("name") is not None:
        canonical, inferred_grade = normalize(changes["name"])
        if not canonical:
            raise ValidationError("Class name is required", field="name")
        if canonical != old_name:
            if await _find_class_by_name(db, canonical) is not None:
                raise ValidationError(f"Class '{canonical}' already exists", field="name")
            school_class.name = canonical
            if changes.get("grade") is None:
                school_class.grade = inferred_grade

    for key in ("grade", "description", "is_active"):
        if changes.get(key) is not None:
            setattr(school_class, key, changes[key])

    if school_class.name != old_name:
        await db.execute(
            update(Student)
            .where(or_(Student.class_id == class_id, Student.class_name == old_name))
            .values(class_name=school_class.name)
        )
        await db.execute(
            update(Exam).where(Exam.class_name == old_name).values(class_name=school_class.name)
        )

    await db.commit()
    await db.refresh(school_class)
    logger.info(f"User {caller.user_id} updated class {class_id}")
    return school_class


async def toggle_class_active(db: AsyncSession, caller: CallerScope, class_id: int) -> SchoolClass:
    """
    Flip a class between active and inactive.

    Raises:
        RoleRequiredError: If the caller is not an admin or grade leader
        NotFoundError: If the class does not exist
    """
    enforce_roles(caller, CLASS_MANAGERS, "toggle_class")
    school_class = await get_class(db, caller, class_id)
    school_class.is_active = not school_class.is_active
    await db.commit()
    await db.refresh(school_class)
    return school_class


async def delete_class(db: AsyncSession, caller: CallerScope, class_id: int) -> None:
    """
    Delete a class. Its students stay, detached from the class record.

    Raises:
        RoleRequiredError: If the caller is not an admin or grade leader
        NotFoundError: If the class does not exist
    """
    enforce_roles(caller, CLASS_MANAGERS, "delete_class")
    school_class = await get_class(db, caller, class_id)
    await db.delete(school_class)
    await db.commit()
    logger.info(f"User {caller.user_id} deleted class {class_id}")
