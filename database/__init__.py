"""Database module."""
from .models import (
    Base,
    User,
    UserRole,
    SchoolClass,
    Student,
    Semester,
    Exam,
    ExamType,
    ExamStatus,
    Score,
)
from .connection import (
    engine,
    SessionLocal,
    build_engine,
    build_session_factory,
    get_db,
    get_db_context,
    init_db,
)

__all__ = [
    "Base",
    "User",
    "UserRole",
    "SchoolClass",
    "Student",
    "Semester",
    "Exam",
    "ExamType",
    "ExamStatus",
    "Score",
    "engine",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "get_db",
    "get_db_context",
    "init_db",
]
