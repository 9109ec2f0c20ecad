"""
Semester and student trend statistics.
"""
import math
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from config import get_logger, settings
from database import Semester
from .authorization import CallerScope, ResourceKind, scope_for
from .exams import find_exams_by_semester
from .exceptions import NotFoundError
from .scores_read import find_scores_by_student, find_scores_for_exams
from .statistics import is_submitted, mean_of, submitted_values, summarize
from .students import get_student

logger = get_logger(__name__)


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


def _compare(earlier: Sequence[float], later: Sequence[float], delta: float) -> Trend:
    earlier_avg = sum(earlier) / len(earlier)
    later_avg = sum(later) / len(later)
    if later_avg > earlier_avg + delta:
        return Trend.UP
    if later_avg < earlier_avg - delta:
        return Trend.DOWN
    return Trend.STABLE


def split_half_trend(values: Sequence[float], delta: Optional[float] = None) -> Trend:
    """
    Compare the mean of the second half of a sequence with the first half.

    With an odd length the middle value belongs to both halves. Fewer than
    two values is always stable.
    """
    if delta is None:
        delta = settings.semester_trend_delta
    if len(values) < 2:
        return Trend.STABLE

    first_half = values[:math.ceil(len(values) / 2)]
    second_half = values[len(values) // 2:]
    return _compare(first_half, second_half, delta)


def thirds_trend(values: Sequence[float], delta: Optional[float] = None) -> Trend:
    """
    Compare the mean of the last third of a sequence with the first third.
    Fewer than three values is always stable.
    """
    if delta is None:
        delta = settings.student_trend_delta
    if len(values) < 3:
        return Trend.STABLE

    size = len(values) // 3
    return _compare(values[:size], values[-size:], delta)


def student_progress(scores: Sequence) -> List[Dict[str, Any]]:
    """
    Per-student score sequences, trends and averages, best average first.

    ``scores`` must already be ordered by exam date.
    """
    sequences: Dict[int, Dict[str, Any]] = {}
    for score in scores:
        if not is_submitted(score):
            continue
        entry = sequences.get(score.student_id)
        if entry is None:
            entry = sequences[score.student_id] = {"student": score.student, "scores": []}
        entry["scores"].append(score.score)

    progress = []
    for student_id, entry in sequences.items():
        student = entry["student"]
        values = entry["scores"]
        progress.append({
            "student_id": student_id,
            "student_name": student.name if student else None,
            "student_number": student.student_number if student else None,
            "scores": values,
            "trend": split_half_trend(values).value,
            "average_score": mean_of(values),
        })

    progress.sort(key=lambda p: p["average_score"], reverse=True)
    return progress


async def get_semester_statistics(
    db: AsyncSession,
    semester_id: int,
    caller: CallerScope,
    class_name: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Score trends of every student across the exams of a semester.

    Teachers only see exams they own or exams of classes they own.

    Raises:
        NotFoundError: If the semester does not exist or has no visible exams
    """
    logger.info(
        f"Semester statistics: semester={semester_id} user={caller.user_id} "
        f"role={caller.role.value} class={class_name}"
    )

    semester = await db.get(Semester, semester_id)
    if semester is None:
        raise NotFoundError("Semester", semester_id)

    exams = await find_exams_by_semester(
        db, semester_id, scope_for(caller, ResourceKind.EXAM), class_name
    )
    if not exams:
        logger.warning(f"No visible exams in semester {semester_id} (class={class_name})")
        raise NotFoundError("Exams of semester", semester_id)

    scores = await find_scores_for_exams(db, [exam.id for exam in exams])
    progress = student_progress(scores)

    exam_summaries = []
    for exam in exams:
        values = submitted_values(s for s in scores if s.exam_id == exam.id)
        exam_summaries.append({**exam.to_dict(), "average_score": mean_of(values)})

    average = mean_of(submitted_values(scores))
    logger.info(
        f"Semester {semester_id}: {len(exams)} exams, {len(progress)} students, average={average}"
    )
    return {
        "semester_id": semester.id,
        "semester_name": semester.name,
        "total_exams": len(exams),
        "average_score": average,
        "student_progress": progress,
        "exams": exam_summaries,
    }


async def get_student_statistics(
    db: AsyncSession,
    student_id: int,
    caller: CallerScope,
    semester_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Statistics over one student's exam history, optionally within a semester.

    Raises:
        NotFoundError: If the student is missing or outside the caller's scope
    """
    logger.info(f"Student statistics: student={student_id} semester={semester_id}")

    student = await get_student(db, caller, student_id)
    scores = await find_scores_by_student(db, student.id, semester_id=semester_id)

    valid = [s for s in scores if is_submitted(s)]
    values = [s.score for s in valid]

    return {
        "student_id": student.id,
        "student_name": student.name,
        "student_number": student.student_number,
        "total_exams": len(scores),
        "valid_exams": len(valid),
        **summarize(values),
        "trend": thirds_trend(values).value,
        "scores": [
            {
                "exam_id": s.exam.id,
                "exam_name": s.exam.name,
                "subject": s.exam.subject,
                "exam_date": s.exam.exam_date.isoformat(),
                "score": s.score,
            }
            for s in valid
        ],
    }
