"""
Score writing tools for the School Grades system.

Writes are scoped like reads: a teacher may only enter scores for exams
and students they can see. There is at most one score per (student, exam);
creating a second one is rejected, importing a second one updates the first.
"""
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from config import get_logger
from database import Exam, Score
from .authorization import CallerScope
from .exams import get_exam
from .exceptions import DuplicateScoreError, ValidationError
from .scores_read import find_score, find_score_by_exam_and_student
from .students import get_student

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScoreEntry:
    """One row of a score import."""
    student_id: int
    exam_id: int
    score: Optional[float] = None
    is_absent: bool = False


def _validate_value(value: Optional[float], exam: Exam) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise ValidationError("Score must be a number", field="score")
    if value < 0 or value > exam.total_score:
        raise ValidationError(
            f"Score must be between 0 and {exam.total_score:g}", field="score"
        )


async def save_scores(db: AsyncSession, scores: Sequence[Score]) -> List[Score]:
    """Insert or update a batch of scores in one transaction."""
    scores = list(scores)
    if not scores:
        return []

    db.add_all(scores)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    for score in scores:
        await db.refresh(score)
    return scores


async def create_score(
    db: AsyncSession,
    caller: CallerScope,
    student_id: int,
    exam_id: int,
    score: Optional[float] = None,
    is_absent: bool = False,
) -> Score:
    """
    Record a new score.

    Raises:
        NotFoundError: If the exam or the student is missing or outside the caller's scope
        DuplicateScoreError: If the student already has a score for this exam
        ValidationError: If the value is not a number within the exam's range
    """
    exam = await get_exam(db, caller, exam_id)
    await get_student(db, caller, student_id)
    _validate_value(score, exam)

    if await find_score_by_exam_and_student(db, exam_id, student_id) is not None:
        raise DuplicateScoreError(student_id, exam_id)

    entry = Score(
        student_id=student_id,
        exam_id=exam_id,
        user_id=caller.user_id,
        score=None if is_absent else score,
        is_absent=is_absent,
    )
    (saved,) = await save_scores(db, [entry])
    logger.info(f"User {caller.user_id} recorded score {saved.id} for exam {exam_id}")
    return saved


async def update_score(
    db: AsyncSession,
    caller: CallerScope,
    score_id: int,
    score: Optional[float] = None,
    is_absent: Optional[bool] = None,
) -> Score:
    """
    Change the value or absence flag of a score. Student and exam never change.

    Raises:
        NotFoundError: If the score is missing or outside the caller's scope
        ValidationError: If the value is not a number within the exam's range
    """
    entry = await find_score(db, caller, score_id)

    if is_absent is not None:
        entry.is_absent = is_absent
    if score is not None:
        _validate_value(score, entry.exam)
        entry.score = score
    if entry.is_absent:
        entry.score = None

    (saved,) = await save_scores(db, [entry])
    return saved


async def delete_score(db: AsyncSession, caller: CallerScope, score_id: int) -> None:
    """
    Raises:
        NotFoundError: If the score is missing or outside the caller's scope
    """
    entry = await find_score(db, caller, score_id)
    await db.delete(entry)
    await db.commit()
    logger.info(f"User {caller.user_id} deleted score {score_id}")


async def import_scores(
    db: AsyncSession,
    caller: CallerScope,
    entries: Sequence[ScoreEntry],
) -> List[Score]:
    """
    Insert or update many scores at once.

    An existing (student, exam) score is updated in place, so importing the
    same rows twice leaves the score count unchanged. An empty import
    returns an empty list.

    Raises:
        NotFoundError: If an exam or a student is missing or outside the caller's scope
        ValidationError: If a value is not a number within its exam's range
    """
    if not entries:
        return []

    exams: Dict[int, Exam] = {}
    pending: Dict[Tuple[int, int], Score] = {}

    for item in entries:
        exam = exams.get(item.exam_id)
        if exam is None:
            exam = await get_exam(db, caller, item.exam_id)
            exams[item.exam_id] = exam
        await get_student(db, caller, item.student_id)
        _validate_value(item.score, exam)

        key = (item.student_id, item.exam_id)
        entry = pending.get(key)
        if entry is None:
            entry = await find_score_by_exam_and_student(db, item.exam_id, item.student_id)
        if entry is None:
            entry = Score(student_id=item.student_id, exam_id=item.exam_id, user_id=caller.user_id)

        entry.is_absent = item.is_absent
        entry.score = None if item.is_absent else item.score
        pending[key] = entry

    saved = await save_scores(db, list(pending.values()))
    logger.info(f"User {caller.user_id} imported {len(saved)} scores across {len(exams)} exams")
    return saved
