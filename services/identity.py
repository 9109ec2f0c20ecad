"""
Identity tools for the School Grades system.
Handles user lookup, listing and creation.
"""
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_logger
from database import User, UserRole
from .authorization import AuthorizationService
from .class_names import normalize_class_name
from .exceptions import ValidationError

logger = get_logger(__name__)


async def get_user(db: AsyncSession, user_id: int) -> Dict[str, Any]:
    """
    Get user information from database.

    Raises:
        InvalidUserError: If user not found
    """
    auth_service = AuthorizationService(db)
    user = await auth_service.get_user(user_id)
    return user.to_dict()


async def list_users(db: AsyncSession, role: Optional[str] = None) -> list[Dict[str, Any]]:
    """
    List users, optionally filtered by role.

    Args:
        db: Database session
        role: Optional role filter ('admin', 'teacher' or 'grade_leader')
    """
    stmt = select(User).order_by(User.id)
    if role:
        stmt = stmt.where(User.role == role)
    result = await db.execute(stmt)
    return [u.to_dict() for u in result.scalars().all()]


async def create_user(
    db: AsyncSession,
    username: str,
    name: str,
    role: str,
    class_names: Optional[Iterable[str]] = None,
    subject: Optional[str] = None,
    normalize: Callable[[str], Tuple[str, str]] = normalize_class_name,
) -> Dict[str, Any]:
    """
    Create a new user. Owned class labels are normalized before storing.

    Raises:
        ValidationError: If the role is invalid or the username is taken
    """
    try:
        role = UserRole(role).value
    except ValueError:
        raise ValidationError(
            "Invalid role. Must be 'admin', 'teacher' or 'grade_leader'", field="role"
        )

    existing = await db.execute(select(User).where(User.username == username))
    if existing.scalar_one_or_none() is not None:
        raise ValidationError(f"Username '{username}' is already taken", field="username")

    labels = []
    for label in class_names or ():
        canonical, _ = normalize(label)
        if canonical and canonical not in labels:
            labels.append(canonical)

    user = User(
        username=username,
        name=name,
        role=role,
        subject=subject,
        class_names=labels,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"Created user {user.id} ({role}) with classes {labels}")
    return user.to_dict()
