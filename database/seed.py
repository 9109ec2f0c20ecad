"""
Seed data script for the School Grades system.
Creates sample data for testing and demonstration.
"""
import asyncio
import random
from datetime import date, timedelta

from sqlalchemy import delete

from config import get_logger
from services.ranking import calculate_ranks
from .connection import get_db_context, init_db
from .models import User, SchoolClass, Student, Semester, Exam, Score

logger = get_logger(__name__)

CLASS_NAMES = ["一（1）班", "一（2）班"]
SUBJECTS = ["数学", "语文"]


async def seed_database():
    """Populate database with sample data."""
    async with get_db_context() as db:
        # Clear existing data
        for model in (Score, Exam, Student, SchoolClass, Semester, User):
            await db.execute(delete(model))

        # Create users
        admin = User(username="admin", name="Admin", role="admin")
        leader = User(username="leader", name="Grade Leader", role="grade_leader")
        teachers = [
            User(username="wang", name="Wang Fang", role="teacher",
                 subject=SUBJECTS[0], class_names=[CLASS_NAMES[0]]),
            User(username="li", name="Li Qiang", role="teacher",
                 subject=SUBJECTS[0], class_names=[CLASS_NAMES[1]]),
        ]
        db.add_all([admin, leader, *teachers])
        await db.flush()

        # Create semester
        semester = Semester(
            name="Autumn term",
            school_year="2024-2025",
            start_date=date(2024, 9, 1),
            end_date=date(2025, 1, 20),
            is_current=True,
        )
        db.add(semester)

        # Create classes and students, five per class
        classes = [
            SchoolClass(name=label, grade="一年级", created_by=admin.id) for label in CLASS_NAMES
        ]
        db.add_all(classes)
        await db.flush()

        students = []
        for index, (school_class, teacher) in enumerate(zip(classes, teachers)):
            for n in range(1, 6):
                students.append(Student(
                    name=f"Student {index + 1}-{n}",
                    student_number=f"2024{index + 1:02d}{n:02d}",
                    class_name=school_class.name,
                    class_id=school_class.id,
                    teacher_id=teacher.id,
                ))
        db.add_all(students)
        await db.flush()

        # Three maths exams per class on the same dates, so classes can be compared
        exams = []
        for teacher, label in zip(teachers, CLASS_NAMES):
            for month in range(3):
                exams.append(Exam(
                    name=f"Unit test {month + 1}",
                    subject=SUBJECTS[0],
                    class_name=label,
                    exam_date=semester.start_date + timedelta(days=30 * (month + 1)),
                    exam_type="quiz",
                    status="completed",
                    teacher_id=teacher.id,
                    semester_id=semester.id,
                ))
        db.add_all(exams)
        await db.flush()

        scores = []
        for exam in exams:
            for student in students:
                if student.class_name != exam.class_name:
                    continue
                absent = random.random() < 0.1
                scores.append(Score(
                    student_id=student.id,
                    exam_id=exam.id,
                    user_id=exam.teacher_id,
                    score=None if absent else float(random.randint(35, 100)),
                    is_absent=absent,
                ))
        db.add_all(scores)
        await db.flush()

        exam_ids = [exam.id for exam in exams]

    async with get_db_context() as db:
        for exam_id in exam_ids:
            await calculate_ranks(db, exam_id)

    logger.info("Database seeded successfully!")
    logger.info(
        f"Created: {len(teachers) + 2} users, {len(students)} students, "
        f"{len(exam_ids)} exams, {len(scores)} scores"
    )
    logger.info(f"Reference IDs: admin={admin.id}, leader={leader.id}, "
                f"teachers={[(t.id, t.name) for t in teachers]}")


async def main():
    logger.info("Initializing database...")
    await init_db()
    logger.info("Seeding database...")
    await seed_database()


if __name__ == "__main__":
    asyncio.run(main())
