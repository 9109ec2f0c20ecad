"""
Tests for class label normalization and user / student / exam records.
"""
from datetime import date

import pytest

from services import (
    NotFoundError,
    ValidationError,
    StudentEntry,
    create_exam,
    create_student,
    create_user,
    get_user,
    import_students,
    list_students,
    list_users,
    normalize_class_name,
    update_exam,
    update_student,
)
from services.class_names import parse_class_name
from services.classes import get_or_create_class


class TestClassNames:

    @pytest.mark.parametrize(
        "label, expected",
        [
            ("1-2", ("一（2）班", "一年级")),
            ("3-1", ("三（1）班", "三年级")),
            ("2班", ("一（2）班", "一年级")),
            ("(4)班", ("一（4）班", "一年级")),
            ("二（3）班", ("二（3）班", "二年级")),
            ("五年级6班", ("五（6）班", "五年级")),
            ("6年级1班", ("六（1）班", "六年级")),
            ("  1-2  ", ("一（2）班", "一年级")),
        ],
    )
    def test_normalize(self, label, expected):
        assert normalize_class_name(label) == expected

    @pytest.mark.parametrize(
        "label", ["4-3", "10-2", "十（2）班", "10年级2班", "12-1", "3班"],
    )
    def test_normalize_is_stable(self, label):
        canonical, grade = normalize_class_name(label)
        assert normalize_class_name(canonical) == (canonical, grade)

    def test_tenth_grade(self):
        assert normalize_class_name("10-2") == ("十（2）班", "十年级")
        assert normalize_class_name("12-1") == ("12（1）班", "12年级")

    def test_empty_label(self):
        assert normalize_class_name("") == ("", "")

    def test_unrecognised_label_falls_back(self):
        assert parse_class_name("honours group") == (1, 1)


@pytest.mark.anyio
class TestUsers:

    async def test_create_normalizes_classes(self, db):
        user = await create_user(db, "zhao", "Zhao Lei", "teacher",
                                 class_names=["1-2", "一（2）班", "2-1"], subject="math")
        assert user["role"] == "teacher"
        assert user["class_names"] == ["一（2）班", "二（1）班"]

        loaded = await get_user(db, user["id"])
        assert loaded["username"] == "zhao"

    async def test_invalid_role(self, db):
        with pytest.raises(ValidationError) as exc_info:
            await create_user(db, "x", "X", "student")
        assert exc_info.value.field == "role"

    async def test_username_taken(self, db, school):
        with pytest.raises(ValidationError):
            await create_user(db, "admin", "Another", "admin")

    async def test_list_by_role(self, db, school):
        teachers = await list_users(db, role="teacher")
        assert {u["username"] for u in teachers} == {"ta", "tb"}
        assert len(await list_users(db)) == 4


@pytest.mark.anyio
class TestStudentsAndExams:

    async def test_create_student_normalizes_class(self, db, school):
        student = await create_student(db, school.teacher_a, "New", "N001", "1-1")
        assert student.class_name == "一（1）班"
        assert student.teacher_id == school.teacher_a.user_id
        assert student.class_id is not None

    async def test_stored_label_keeps_its_class(self, db, school):
        first = await create_student(db, school.teacher_a, "Ten", "T001", "10-2")
        second = await create_student(db, school.teacher_a, "Ten Too", "T002", first.class_name)
        assert first.class_name == second.class_name == "十（2）班"
        assert first.class_id == second.class_id

    async def test_class_created_once(self, db, school):
        first = await get_or_create_class(db, school.teacher_a, "3-2")
        second = await get_or_create_class(db, school.teacher_b, "三（2）班")
        assert first.id == second.id
        assert first.grade == "三年级"

    async def test_duplicate_student_number(self, db, school):
        with pytest.raises(ValidationError):
            await create_student(db, school.teacher_a, "Copy", "A001", "1-1")

    async def test_injected_normalizer(self, db, school):
        student = await create_student(
            db, school.teacher_a, "Custom", "C001", "Robotics",
            normalize=lambda label: (label.upper(), "club"),
        )
        assert student.class_name == "ROBOTICS"

    async def test_create_exam_owned_by_caller(self, db, school):
        exam = await create_exam(db, school.teacher_b, "Quiz", "math", "1-2",
                                 date(2024, 12, 2), semester_id=school.semester.id)
        assert exam.teacher_id == school.teacher_b.user_id
        assert exam.class_name == "一（2）班"

    async def test_create_exam_validation(self, db, school):
        with pytest.raises(ValidationError):
            await create_exam(db, school.teacher_a, "Quiz", "math", "1-1",
                              date(2024, 12, 2), total_score=0)
        with pytest.raises(ValidationError):
            await create_exam(db, school.teacher_a, "Quiz", "math", "1-1",
                              date(2024, 12, 2), exam_type="oral")
        with pytest.raises(NotFoundError):
            await create_exam(db, school.teacher_a, "Quiz", "math", "1-1",
                              date(2024, 12, 2), semester_id=9999)

    async def test_update_exam(self, db, school):
        exam = await update_exam(db, school.teacher_a, school.exam_a.id,
                                 name="Final", status="completed", total_score=120)
        assert exam.name == "Final"
        assert exam.status == "completed"
        assert exam.total_score == 120
        assert exam.teacher_id == school.teacher_a.user_id

    async def test_update_exam_normalizes_class(self, db, school):
        exam = await update_exam(db, school.admin, school.exam_b.id,
                                 class_name="2-1", exam_date=date(2024, 11, 6))
        assert exam.class_name == "二（1）班"
        assert exam.exam_date == date(2024, 11, 6)

    async def test_update_exam_validation(self, db, school):
        with pytest.raises(ValidationError):
            await update_exam(db, school.teacher_a, school.exam_a.id, exam_type="oral")
        with pytest.raises(ValidationError):
            await update_exam(db, school.teacher_a, school.exam_a.id, teacher_id=999)
        with pytest.raises(NotFoundError):
            await update_exam(db, school.teacher_a, school.exam_a.id, semester_id=9999)

    async def test_update_exam_outside_scope(self, db, school):
        with pytest.raises(NotFoundError):
            await update_exam(db, school.teacher_a, school.exam_b.id, name="Mine now")


@pytest.mark.anyio
class TestStudentChanges:

    async def test_update_student(self, db, school):
        target = school.students_a[0]
        student = await update_student(db, school.teacher_a, target.id,
                                       name="Renamed", class_name="1-3")
        assert student.name == "Renamed"
        assert student.class_name == "一（3）班"
        assert student.class_id is not None
        assert student.student_number == "A001"

    async def test_update_student_number_taken(self, db, school):
        with pytest.raises(ValidationError):
            await update_student(db, school.teacher_a, school.students_a[0].id,
                                 student_number="A002")

    async def test_update_student_outside_scope(self, db, school):
        with pytest.raises(NotFoundError):
            await update_student(db, school.teacher_b, school.students_a[0].id, name="X")

    async def test_import_students(self, db, school):
        students = await import_students(db, school.teacher_b, [
            StudentEntry("New 1", "N001", "1-2"),
            StudentEntry("New 2", "N002", "十（2）班"),
        ])
        assert [s.class_name for s in students] == ["一（2）班", "十（2）班"]
        assert all(s.teacher_id == school.teacher_b.user_id for s in students)

        visible = await list_students(db, school.teacher_b)
        assert {"N001", "N002"} <= {s["student_number"] for s in visible}

    async def test_import_empty(self, db, school):
        assert await import_students(db, school.teacher_a, []) == []

    @pytest.mark.parametrize(
        "numbers",
        [["N001", "N001"], ["N001", "A001"]],
    )
    async def test_import_rejects_whole_batch(self, db, school, numbers):
        entries = [StudentEntry(f"S{i}", n, "1-1") for i, n in enumerate(numbers)]
        with pytest.raises(ValidationError):
            await import_students(db, school.teacher_a, entries)

        visible = await list_students(db, school.admin)
        assert "N001" not in {s["student_number"] for s in visible}
