"""
Exam statistics for the School Grades system.

Rounding follows the half-up rule throughout. Percentages are computed as
``round_half_up(count / total * 10000) / 100`` (two steps, not one) so they
agree with stored report fixtures at boundary values.
"""
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from config import get_logger, settings
from .authorization import CallerScope, enforce_exam_statistics_access
from .exams import find_exam_by_id
from .exceptions import NotFoundError, ValidationError
from .scores_read import find_scores_by_exam

logger = get_logger(__name__)

# (label, lower bound, upper bound, upper bound inclusive)
SCORE_BUCKETS = (
    ("90-100", 90, 100, True),
    ("80-89", 80, 90, False),
    ("70-79", 70, 80, False),
    ("60-69", 60, 70, False),
    ("50-59", 50, 60, False),
    ("0-49", 0, 50, False),
)


@dataclass(frozen=True)
class Thresholds:
    """
    Grade band thresholds.

    excellent: value >= excellent
    passing: value >= passing
    poor: value < poor
    """
    excellent: float = 85
    passing: float = 60
    poor: float = 40

    @classmethod
    def from_settings(cls) -> "Thresholds":
        return cls(
            excellent=settings.excellent_threshold,
            passing=settings.pass_threshold,
            poor=settings.poor_threshold,
        )

    def validated(self) -> "Thresholds":
        """
        Raises:
            ValidationError: If any threshold is not a finite, non-negative number
        """
        for name in ("excellent", "passing", "poor"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"Threshold '{name}' must be a number", field=name)
            if not math.isfinite(value) or value < 0:
                raise ValidationError(
                    f"Threshold '{name}' must be a finite, non-negative number", field=name
                )
        return self


def round_half_up(value: float, digits: int = 2) -> float:
    """Round like JavaScript's Math.round: halves go up, not to even."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def percentage(count: int, total: int) -> float:
    """Share of ``total`` as a percentage with two decimals; 0 when total is 0."""
    if total == 0:
        return 0
    return math.floor(count / total * 10000 + 0.5) / 100


def mean_of(values: Sequence[float]) -> float:
    """Mean rounded to two decimals; 0 for no values."""
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def summarize(values: Sequence[float]) -> Dict[str, float]:
    """Average, maximum and minimum of a list of values (all 0 when empty)."""
    return {
        "average_score": mean_of(values),
        "max_score": max(values) if values else 0,
        "min_score": min(values) if values else 0,
    }


def is_submitted(score) -> bool:
    """A submitted score has a value and is not marked absent."""
    return not score.is_absent and score.score is not None


def submitted_values(scores: Iterable) -> List[float]:
    return [s.score for s in scores if is_submitted(s)]


def bucket_of(value: float) -> Optional[str]:
    """Label of the distribution bucket holding ``value``; None outside 0-100."""
    for label, low, high, inclusive in SCORE_BUCKETS:
        if low <= value < high or (inclusive and value == high):
            return label
    return None


def score_distribution(values: Sequence[float], submitted_count: int) -> List[Dict[str, Any]]:
    counts = {label: 0 for label, _, _, _ in SCORE_BUCKETS}
    for value in values:
        label = bucket_of(value)
        if label is not None:
            counts[label] += 1

    return [
        {
            "range": label,
            "count": counts[label],
            "percentage": percentage(counts[label], submitted_count),
        }
        for label, _, _, _ in SCORE_BUCKETS
    ]


def compute_exam_statistics(scores: Sequence, thresholds: Thresholds) -> Dict[str, Any]:
    """
    Compute counts, rates and the score distribution of one exam.

    Args:
        scores: Score-like objects with ``score`` and ``is_absent``
        thresholds: Grade band thresholds

    Returns:
        Dictionary of exam statistics
    """
    values = submitted_values(scores)
    submitted_count = len(values)

    excellent_count = sum(1 for v in values if v >= thresholds.excellent)
    pass_count = sum(1 for v in values if v >= thresholds.passing)
    poor_count = sum(1 for v in values if v < thresholds.poor)

    distribution = score_distribution(values, submitted_count)
    bucketed = sum(bucket["count"] for bucket in distribution)

    return {
        "total_students": len(scores),
        "submitted_count": submitted_count,
        "absent_count": sum(1 for s in scores if s.is_absent),
        **summarize(values),
        "excellent_count": excellent_count,
        "excellent_rate": percentage(excellent_count, submitted_count),
        "pass_count": pass_count,
        "pass_rate": percentage(pass_count, submitted_count),
        "poor_count": poor_count,
        "poor_rate": percentage(poor_count, submitted_count),
        "score_distribution": distribution,
        "out_of_range_count": submitted_count - bucketed,
    }


async def get_exam_statistics(
    db: AsyncSession,
    exam_id: int,
    caller: CallerScope,
    thresholds: Optional[Thresholds] = None,
) -> Dict[str, Any]:
    """
    Statistics of one exam.

    AUTHORIZATION: the exam's owning teacher, admins and grade leaders.

    Raises:
        ValidationError: If the thresholds are malformed
        NotFoundError: If the exam does not exist
        ExamAccessDenied: If the caller neither owns the exam nor has full scope
    """
    thresholds = (thresholds or Thresholds.from_settings()).validated()
    logger.info(f"Exam statistics: exam={exam_id} user={caller.user_id} role={caller.role.value}")

    exam = await find_exam_by_id(db, exam_id)
    if exam is None:
        logger.warning(f"Exam {exam_id} not found")
        raise NotFoundError("Exam", exam_id)

    enforce_exam_statistics_access(caller, exam)

    scores = await find_scores_by_exam(db, exam.id)
    stats = compute_exam_statistics(scores, thresholds)

    logger.info(
        f"Exam {exam_id}: {stats['submitted_count']} submitted, "
        f"average={stats['average_score']}, pass_rate={stats['pass_rate']}%"
    )
    return {"exam_id": exam.id, "exam_name": exam.name, **stats}
