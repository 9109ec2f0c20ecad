"""
Score read operations for the School Grades system.
Implements scoped read operations over score records.

RULE: a teacher only sees scores they entered or scores of exams held by
classes they own. Admins and grade leaders see everything.
"""
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import Exam, Score
from .authorization import CallerScope, ResourceKind, ScopeFilter, ensure_visible, scope_for
from .exams import get_exam
from .students import get_student


async def find_scores_by_exam(
    db: AsyncSession,
    exam_id: int,
    scope: Optional[ScopeFilter] = None,
) -> List[Score]:
    """All scores of one exam, highest first, missing values last."""
    stmt = select(Score).where(Score.exam_id == exam_id)
    if scope is not None:
        stmt = scope.apply(stmt)
    stmt = stmt.order_by(Score.score.is_(None), Score.score.desc(), Score.id)

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def find_scores_by_student(
    db: AsyncSession,
    student_id: int,
    scope: Optional[ScopeFilter] = None,
    semester_id: Optional[int] = None,
) -> List[Score]:
    """All scores of one student, ordered by exam date ascending."""
    stmt = (
        select(Score)
        .join(Exam, Score.exam_id == Exam.id)
        .where(Score.student_id == student_id)
    )
    if semester_id is not None:
        stmt = stmt.where(Exam.semester_id == semester_id)
    if scope is not None:
        stmt = scope.apply(stmt)
    stmt = stmt.order_by(Exam.exam_date.asc(), Exam.id.asc())

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def find_scores_for_exams(db: AsyncSession, exam_ids: Iterable[int]) -> List[Score]:
    """Scores of several exams, ordered by exam date then exam id."""
    exam_ids = list(exam_ids)
    if not exam_ids:
        return []

    stmt = (
        select(Score)
        .join(Exam, Score.exam_id == Exam.id)
        .where(Score.exam_id.in_(exam_ids))
        .order_by(Exam.exam_date.asc(), Exam.id.asc(), Score.id.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def find_score_by_exam_and_student(
    db: AsyncSession,
    exam_id: int,
    student_id: int,
) -> Optional[Score]:
    stmt = select(Score).where(Score.exam_id == exam_id, Score.student_id == student_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def find_score(db: AsyncSession, caller: CallerScope, score_id: int) -> Score:
    """
    Fetch one score the caller may see.

    Raises:
        NotFoundError: If the score is missing or outside the caller's scope
    """
    score = await db.get(Score, score_id)
    return ensure_visible(caller, score, ResourceKind.SCORE, "Score", score_id)


async def get_exam_scores(
    db: AsyncSession,
    caller: CallerScope,
    exam_id: int,
) -> Dict[str, Any]:
    """
    Scores of one exam as seen by the caller.

    Raises:
        NotFoundError: If the exam is missing or outside the caller's scope
    """
    exam = await get_exam(db, caller, exam_id)
    scores = await find_scores_by_exam(db, exam.id)

    return {
        "exam": exam.to_dict(),
        "total_scores": len(scores),
        "scores": [s.to_dict() for s in scores],
    }


async def get_student_scores(
    db: AsyncSession,
    caller: CallerScope,
    student_id: int,
) -> Dict[str, Any]:
    """
    Scores of one student as seen by the caller, newest exam first.

    Only scores inside the caller's score scope are listed.
    """
    student = await get_student(db, caller, student_id)
    scores = await find_scores_by_student(
        db, student.id, scope=scope_for(caller, ResourceKind.SCORE)
    )

    return {
        "student": student.to_dict(),
        "total_scores": len(scores),
        "scores": [s.to_dict() for s in reversed(scores)],
    }


async def list_scores(
    db: AsyncSession,
    caller: CallerScope,
    exam_id: Optional[int] = None,
    student_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Every score inside the caller's scope, most recently entered first.
    Optional exam and student filters narrow the listing further.
    """
    stmt = select(Score)
    if exam_id is not None:
        stmt = stmt.where(Score.exam_id == exam_id)
    if student_id is not None:
        stmt = stmt.where(Score.student_id == student_id)
    stmt = scope_for(caller, ResourceKind.SCORE).apply(stmt)
    stmt = stmt.order_by(Score.created_at.desc(), Score.id.desc())

    result = await db.execute(stmt)
    return [s.to_dict() for s in result.scalars().all()]
