"""
Tests for exam statistics.
"""
import math
from types import SimpleNamespace

import pytest

from services import (
    ExamAccessDenied,
    NotFoundError,
    Thresholds,
    ValidationError,
    compute_exam_statistics,
    get_exam_statistics,
)
from services.statistics import bucket_of, is_submitted, percentage, round_half_up

DEFAULT = Thresholds()


def make_scores(values):
    """None is an absent student."""
    return [SimpleNamespace(score=v, is_absent=v is None) for v in values]


class TestRounding:

    def test_half_up(self):
        assert round_half_up(0.125) == 0.13
        assert round_half_up(90.3333) == 90.33

    def test_percentage(self):
        assert percentage(1, 3) == 33.33
        assert percentage(2, 3) == 66.67
        assert percentage(0, 0) == 0
        assert percentage(5, 5) == 100


class TestSubmitted:

    @pytest.mark.parametrize(
        "value, absent, expected",
        [(80, False, True), (0, False, True), (None, False, False), (None, True, False),
         (75, True, False)],
    )
    def test_is_submitted(self, value, absent, expected):
        assert is_submitted(SimpleNamespace(score=value, is_absent=absent)) is expected


class TestComputeExamStatistics:

    def test_average_rounding(self):
        stats = compute_exam_statistics(make_scores([90, 90, 91]), DEFAULT)
        assert stats["average_score"] == 90.33
        assert stats["max_score"] == 91
        assert stats["min_score"] == 90

    def test_counts_and_rates(self):
        scores = make_scores([95, 85, 84, 60, 59, 39, None])
        stats = compute_exam_statistics(scores, DEFAULT)

        assert stats["total_students"] == 7
        assert stats["submitted_count"] == 6
        assert stats["absent_count"] == 1
        assert stats["excellent_count"] == 2
        assert stats["pass_count"] == 4
        assert stats["poor_count"] == 1
        assert stats["excellent_rate"] == 33.33
        assert stats["pass_rate"] == 66.67
        assert stats["poor_rate"] == 16.67

    def test_null_value_not_absent_is_not_submitted(self):
        scores = make_scores([80])
        scores.append(SimpleNamespace(score=None, is_absent=False))
        stats = compute_exam_statistics(scores, DEFAULT)
        assert stats["total_students"] == 2
        assert stats["submitted_count"] == 1
        assert stats["absent_count"] == 0

    def test_no_submitted_scores(self):
        stats = compute_exam_statistics(make_scores([None, None]), DEFAULT)
        assert stats["submitted_count"] == 0
        assert stats["average_score"] == 0
        assert stats["max_score"] == 0
        assert stats["min_score"] == 0
        assert stats["pass_rate"] == 0
        assert all(b["count"] == 0 and b["percentage"] == 0 for b in stats["score_distribution"])

    def test_empty_exam(self):
        stats = compute_exam_statistics([], DEFAULT)
        assert stats["total_students"] == 0
        assert stats["excellent_rate"] == 0

    def test_rates_bounded_and_pass_covers_excellent(self):
        values = [0, 12.5, 40, 59.99, 60, 72, 84.99, 85, 99, 100]
        stats = compute_exam_statistics(make_scores(values), DEFAULT)
        for key in ("excellent_rate", "pass_rate", "poor_rate"):
            assert 0 <= stats[key] <= 100
        assert stats["pass_count"] >= stats["excellent_count"]
        assert stats["pass_rate"] >= stats["excellent_rate"]

    def test_distribution_is_complete(self):
        values = [100, 90, 89, 80, 79.5, 70, 69, 60, 59, 50, 49.9, 0]
        stats = compute_exam_statistics(make_scores(values), DEFAULT)
        distribution = {b["range"]: b["count"] for b in stats["score_distribution"]}

        assert list(distribution) == ["90-100", "80-89", "70-79", "60-69", "50-59", "0-49"]
        assert distribution == {
            "90-100": 2, "80-89": 2, "70-79": 2, "60-69": 2, "50-59": 2, "0-49": 2,
        }
        assert sum(distribution.values()) == stats["submitted_count"]
        assert stats["out_of_range_count"] == 0

    def test_out_of_range_values(self):
        stats = compute_exam_statistics(make_scores([120, -5, 70]), DEFAULT)
        assert stats["submitted_count"] == 3
        assert stats["out_of_range_count"] == 2
        assert sum(b["count"] for b in stats["score_distribution"]) == 1

    def test_custom_thresholds(self):
        stats = compute_exam_statistics(
            make_scores([95, 90, 70]), Thresholds(excellent=90, passing=75, poor=72)
        )
        assert stats["excellent_count"] == 2
        assert stats["pass_count"] == 2
        assert stats["poor_count"] == 1


class TestBuckets:

    @pytest.mark.parametrize(
        "value, label",
        [(100, "90-100"), (90, "90-100"), (89.99, "80-89"), (50, "50-59"),
         (49.5, "0-49"), (0, "0-49"), (100.5, None), (-1, None)],
    )
    def test_bucket_of(self, value, label):
        assert bucket_of(value) == label


class TestThresholdValidation:

    @pytest.mark.parametrize(
        "thresholds",
        [
            Thresholds(excellent="high"),
            Thresholds(passing=math.nan),
            Thresholds(poor=math.inf),
            Thresholds(excellent=-1),
            Thresholds(passing=True),
        ],
    )
    def test_malformed(self, thresholds):
        with pytest.raises(ValidationError):
            thresholds.validated()

    def test_defaults_are_valid(self):
        assert Thresholds.from_settings().validated() == Thresholds(85, 60, 40)


@pytest.mark.anyio
class TestGetExamStatistics:

    async def test_owner_sees_statistics(self, db, school, add_scores):
        a1, a2, a3, a4 = school.students_a
        await add_scores(school.exam_a, [(a1, 90), (a2, 90), (a3, 91), (a4, None)])

        stats = await get_exam_statistics(db, school.exam_a.id, school.teacher_a)
        assert stats["exam_id"] == school.exam_a.id
        assert stats["exam_name"] == "Midterm"
        assert stats["average_score"] == 90.33
        assert stats["absent_count"] == 1

    async def test_full_scope_roles_see_any_exam(self, db, school):
        for caller in (school.admin, school.leader):
            stats = await get_exam_statistics(db, school.exam_b.id, caller)
            assert stats["total_students"] == 0

    async def test_other_teacher_is_forbidden(self, db, school):
        with pytest.raises(ExamAccessDenied):
            await get_exam_statistics(db, school.exam_b.id, school.teacher_a)

    async def test_missing_exam(self, db, school):
        with pytest.raises(NotFoundError):
            await get_exam_statistics(db, 9999, school.admin)

    async def test_malformed_thresholds_rejected_before_lookup(self, db, school):
        with pytest.raises(ValidationError):
            await get_exam_statistics(db, 9999, school.admin, Thresholds(poor=math.nan))
