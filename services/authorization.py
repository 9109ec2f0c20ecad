"""
Authorization module for the School Grades system.
Implements role-based scoping with enforcement at the service layer.

RULES:
1. Never trust the client for role or classes - always load them from DB
2. Admins and grade leaders see everything (full scope)
3. Teachers see records they own or records of classes they own
4. A by-id lookup outside the caller's scope looks exactly like a missing record
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import false, or_
from sqlalchemy.ext.asyncio import AsyncSession

from database import User, UserRole, Exam, Student, Score, SchoolClass
from .exceptions import (
    ExamAccessDenied,
    InvalidUserError,
    NotFoundError,
    RoleRequiredError,
    ValidationError,
)


FULL_SCOPE_ROLES = frozenset({UserRole.ADMIN, UserRole.GRADE_LEADER})


class ResourceKind(str, Enum):
    """Record types the scope resolver knows how to filter."""
    EXAM = "exam"
    STUDENT = "student"
    SCORE = "score"
    SCHOOL_CLASS = "school_class"


@dataclass(frozen=True)
class _ResourceFields:
    owner_column: Callable[[], Any]
    class_label_clause: Callable[[list[str]], Any]
    owner_of: Callable[[Any], Optional[int]]
    class_label_of: Callable[[Any], Optional[str]]


def _score_class_label(score) -> Optional[str]:
    exam = score.exam
    return exam.class_name if exam is not None else None


_RESOURCE_FIELDS = {
    ResourceKind.EXAM: _ResourceFields(
        owner_column=lambda: Exam.teacher_id,
        class_label_clause=lambda names: Exam.class_name.in_(names),
        owner_of=lambda exam: exam.teacher_id,
        class_label_of=lambda exam: exam.class_name,
    ),
    ResourceKind.STUDENT: _ResourceFields(
        owner_column=lambda: Student.teacher_id,
        class_label_clause=lambda names: Student.class_name.in_(names),
        owner_of=lambda student: student.teacher_id,
        class_label_of=lambda student: student.class_name,
    ),
    # Scores carry no class label; the exam they belong to does.
    ResourceKind.SCORE: _ResourceFields(
        owner_column=lambda: Score.user_id,
        class_label_clause=lambda names: Score.exam.has(Exam.class_name.in_(names)),
        owner_of=lambda score: score.user_id,
        class_label_of=_score_class_label,
    ),
    ResourceKind.SCHOOL_CLASS: _ResourceFields(
        owner_column=lambda: SchoolClass.created_by,
        class_label_clause=lambda names: SchoolClass.name.in_(names),
        owner_of=lambda school_class: school_class.created_by,
        class_label_of=lambda school_class: school_class.name,
    ),
}


@dataclass(frozen=True)
class CallerScope:
    """
    Identity of the user making a request.

    Built from the users table for every request; never from client input.
    """
    user_id: int
    role: UserRole
    class_names: frozenset = field(default_factory=frozenset)

    @property
    def has_full_scope(self) -> bool:
        return self.role in FULL_SCOPE_ROLES

    @classmethod
    def from_user(cls, user: User) -> "CallerScope":
        return cls(
            user_id=user.id,
            role=UserRole(user.role),
            class_names=frozenset(user.get_class_names()),
        )


@dataclass(frozen=True)
class ScopeFilter:
    """
    Filter predicate produced by :func:`resolve_scope`.

    Works both as a SQL where-clause (``apply``/``clause``) and as an
    in-memory check on a loaded record (``matches``).
    """
    kind: ResourceKind
    full: bool = False
    owner_id: Optional[int] = None
    class_names: frozenset = field(default_factory=frozenset)

    @property
    def _fields(self) -> _ResourceFields:
        return _RESOURCE_FIELDS[self.kind]

    def clause(self):
        """SQL condition for this scope, or None when nothing is restricted."""
        if self.full:
            return None

        conditions = []
        if self.owner_id is not None:
            conditions.append(self._fields.owner_column() == self.owner_id)
        if self.class_names:
            conditions.append(self._fields.class_label_clause(sorted(self.class_names)))

        if not conditions:
            return false()
        return or_(*conditions)

    def apply(self, stmt):
        """Narrow a select statement to the records inside this scope."""
        condition = self.clause()
        if condition is None:
            return stmt
        return stmt.where(condition)

    def matches(self, record) -> bool:
        """Check an already-loaded record against this scope."""
        if self.full:
            return True
        if record is None:
            return False

        owner = self._fields.owner_of(record)
        if self.owner_id is not None and owner == self.owner_id:
            return True
        return self._fields.class_label_of(record) in self.class_names


def _full_scope(kind: ResourceKind, caller_id: int, class_names: frozenset) -> ScopeFilter:
    return ScopeFilter(kind=kind, full=True)


def _owner_or_class_scope(kind: ResourceKind, caller_id: int, class_names: frozenset) -> ScopeFilter:
    return ScopeFilter(kind=kind, owner_id=caller_id, class_names=class_names)


_SCOPE_STRATEGIES = {
    UserRole.ADMIN: _full_scope,
    UserRole.GRADE_LEADER: _full_scope,
    UserRole.TEACHER: _owner_or_class_scope,
}


def resolve_scope(
    role,
    caller_id: int,
    class_names: Optional[Iterable[str]],
    resource_kind: ResourceKind,
) -> ScopeFilter:
    """
    Decide what a caller may see of one kind of record.

    Args:
        role: Caller role ('admin', 'teacher' or 'grade_leader')
        caller_id: Caller's user id
        class_names: Class labels owned by the caller
        resource_kind: Kind of record being accessed

    Returns:
        ScopeFilter matching every record the caller may see

    Raises:
        ValidationError: If the role or the resource kind is unknown
    """
    try:
        role = UserRole(role)
    except ValueError as exc:
        raise ValidationError(f"Unknown role '{role}'", field="role") from exc
    try:
        resource_kind = ResourceKind(resource_kind)
    except ValueError as exc:
        raise ValidationError(f"Unknown resource kind '{resource_kind}'", field="resource_kind") from exc

    strategy = _SCOPE_STRATEGIES[role]
    return strategy(resource_kind, caller_id, frozenset(class_names or ()))


def scope_for(caller: CallerScope, resource_kind: ResourceKind) -> ScopeFilter:
    """Shortcut for resolving a caller's scope over one resource kind."""
    return resolve_scope(caller.role, caller.user_id, caller.class_names, resource_kind)


def ensure_visible(
    caller: CallerScope,
    record,
    resource_kind: ResourceKind,
    resource_name: str,
    resource_id,
):
    """
    Re-check a record fetched by id against the caller's scope.

    Raises:
        NotFoundError: If the record is missing or outside the caller's scope
    """
    if record is None or not scope_for(caller, resource_kind).matches(record):
        raise NotFoundError(resource_name, resource_id)
    return record


def enforce_exam_statistics_access(caller: CallerScope, exam: Exam) -> None:
    """
    Only the exam's owning teacher, or a full-scope caller, may see its statistics.

    Raises:
        ExamAccessDenied: If the caller neither owns the exam nor has full scope
    """
    if caller.has_full_scope:
        return
    if exam.teacher_id != caller.user_id:
        raise ExamAccessDenied(caller.user_id, exam.id)


def enforce_roles(caller: CallerScope, roles: Iterable[UserRole], action: str) -> None:
    """
    Raises:
        RoleRequiredError: If the caller's role is not one of ``roles``
    """
    allowed = [UserRole(r) for r in roles]
    if caller.role not in allowed:
        raise RoleRequiredError(caller.user_id, action, [r.value for r in allowed])


class AuthorizationService:
    """
    Service for loading caller identities.
    All role information is fetched from the database, never trusted from client.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: int) -> User:
        """
        Get user from database.

        Raises:
            InvalidUserError: If user not found or disabled
        """
        user = await self.db.get(User, user_id)
        if user is None or not user.is_active:
            raise InvalidUserError(user_id)
        return user

    async def get_caller(self, user_id: int) -> CallerScope:
        """Load the caller's role and owned classes from the database."""
        user = await self.get_user(user_id)
        return CallerScope.from_user(user)
