"""
Shared fixtures: a fresh in-memory database per test and a small school
(an admin, a grade leader, two teachers owning one class each).
"""
import os
import sys
from datetime import date
from types import SimpleNamespace

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from sqlalchemy.pool import StaticPool

from database import (
    build_engine,
    build_session_factory,
    init_db,
    User,
    Student,
    Semester,
    Exam,
    Score,
)
from services import CallerScope

CLASS_A = "一（1）班"
CLASS_B = "一（2）班"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine(anyio_backend):
    test_engine = build_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def school(db):
    """
    Two classes sitting the same maths exam on the same day.

    teacher_a owns CLASS_A and exam_a, teacher_b owns CLASS_B and exam_b.
    """
    admin = User(username="admin", name="Admin", role="admin")
    leader = User(username="leader", name="Leader", role="grade_leader")
    teacher_a = User(username="ta", name="Teacher A", role="teacher", class_names=[CLASS_A])
    teacher_b = User(username="tb", name="Teacher B", role="teacher", class_names=[CLASS_B])
    db.add_all([admin, leader, teacher_a, teacher_b])
    await db.flush()

    semester = Semester(
        name="Autumn",
        school_year="2024-2025",
        start_date=date(2024, 9, 1),
        end_date=date(2025, 1, 20),
        is_current=True,
    )
    db.add(semester)
    await db.flush()

    students_a = [
        Student(name=f"A{i}", student_number=f"A{i:03d}", class_name=CLASS_A,
                teacher_id=teacher_a.id)
        for i in range(1, 5)
    ]
    students_b = [
        Student(name=f"B{i}", student_number=f"B{i:03d}", class_name=CLASS_B,
                teacher_id=teacher_b.id)
        for i in range(1, 4)
    ]
    db.add_all(students_a + students_b)
    await db.flush()

    exam_a = Exam(name="Midterm", subject="math", class_name=CLASS_A,
                  exam_date=date(2024, 11, 5), teacher_id=teacher_a.id,
                  semester_id=semester.id)
    exam_b = Exam(name="Midterm", subject="math", class_name=CLASS_B,
                  exam_date=date(2024, 11, 5), teacher_id=teacher_b.id,
                  semester_id=semester.id)
    db.add_all([exam_a, exam_b])
    await db.commit()

    return SimpleNamespace(
        users=[admin, leader, teacher_a, teacher_b],
        admin=CallerScope.from_user(admin),
        leader=CallerScope.from_user(leader),
        teacher_a=CallerScope.from_user(teacher_a),
        teacher_b=CallerScope.from_user(teacher_b),
        semester=semester,
        students_a=students_a,
        students_b=students_b,
        exam_a=exam_a,
        exam_b=exam_b,
    )


@pytest.fixture
def add_scores(db):
    """Insert scores for (student, value) pairs; None means absent."""
    async def _add(exam, pairs, user_id=None):
        scores = [
            Score(
                student_id=student.id,
                exam_id=exam.id,
                user_id=user_id if user_id is not None else exam.teacher_id,
                score=value,
                is_absent=value is None,
            )
            for student, value in pairs
        ]
        db.add_all(scores)
        await db.commit()
        return scores
    return _add
