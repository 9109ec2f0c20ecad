"""
Database models for the School Grades system.
Defines all SQLAlchemy models for users, classes, students, semesters,
exams and scores.
"""
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, Date, DateTime, Text, JSON,
    Enum, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship, declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class UserRole(str, PyEnum):
    """User roles enum."""
    ADMIN = "admin"
    TEACHER = "teacher"
    GRADE_LEADER = "grade_leader"


class ExamType(str, PyEnum):
    MIDTERM = "midterm"
    FINAL = "final"
    QUIZ = "quiz"
    OTHER = "other"


class ExamStatus(str, PyEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ANALYZED = "analyzed"


class User(Base):
    """
    Users table - stores admins, teachers and grade leaders.

    Attributes:
        id: Unique identifier
        username: Login name
        name: User's full name
        role: 'admin', 'teacher' or 'grade_leader'
        subject: Subject the user teaches (optional)
        class_names: List of class labels the user is responsible for
        is_active: Whether the account is enabled
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    role = Column(
        Enum("admin", "teacher", "grade_leader", name="user_role"),
        nullable=False,
        default=UserRole.TEACHER.value,
    )
    subject = Column(String(100), nullable=True)
    class_names = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=func.now())

    # Relationships
    exams = relationship("Exam", back_populates="teacher", passive_deletes=True)

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"

    def get_class_names(self) -> list[str]:
        """Class labels owned by this user, always as a list."""
        if not self.class_names:
            return []
        if isinstance(self.class_names, str):
            return [c for c in self.class_names.split(",") if c]
        return list(self.class_names)

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "subject": self.subject,
            "class_names": self.get_class_names(),
            "is_active": self.is_active,
        }


class SchoolClass(Base):
    """
    Classes (teaching groups) table.

    Attributes:
        id: Unique identifier
        name: Canonical class label (e.g. "一（1）班")
        grade: Grade label inferred from the class name
        created_by: User who created the class
    """
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    grade = Column(String(20), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=func.now())

    students = relationship("Student", back_populates="school_class", passive_deletes=True)

    def __repr__(self):
        return f"<SchoolClass(id={self.id}, name='{self.name}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "grade": self.grade,
            "description": self.description,
            "is_active": self.is_active,
            "created_by": self.created_by,
        }


class Student(Base):
    """
    Students table.

    Attributes:
        id: Unique identifier
        name: Student's full name
        student_number: School-issued student number
        class_name: Class label the student belongs to
        class_id: Foreign key to classes (nullable while migrating labels)
        teacher_id: Owning teacher (nullable)
    """
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    student_number = Column(String(50), nullable=False, unique=True)
    class_name = Column(String(100), nullable=False)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=func.now())

    # Relationships
    school_class = relationship("SchoolClass", back_populates="students")
    scores = relationship("Score", back_populates="student", passive_deletes=True)

    def __repr__(self):
        return f"<Student(id={self.id}, name='{self.name}', class_name='{self.class_name}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "student_number": self.student_number,
            "class_name": self.class_name,
            "class_id": self.class_id,
            "teacher_id": self.teacher_id,
        }


class Semester(Base):
    """
    Semesters table. At most one row has is_current set.
    """
    __tablename__ = "semesters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    school_year = Column(String(20), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_current = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=func.now())

    exams = relationship("Exam", back_populates="semester", passive_deletes=True)

    def __repr__(self):
        return f"<Semester(id={self.id}, name='{self.name}', is_current={self.is_current})>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "school_year": self.school_year,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "is_current": self.is_current,
        }


class Exam(Base):
    """
    Exams table.

    Attributes:
        id: Unique identifier
        name: Exam name (e.g. "Midterm")
        subject: Subject examined
        class_name: Class label the exam was sat by
        exam_date: Date of the exam
        total_score: Maximum attainable score
        teacher_id: Owning teacher (nullable)
        semester_id: Semester the exam belongs to (nullable)
    """
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    subject = Column(String(100), nullable=False)
    class_name = Column(String(100), nullable=False)
    exam_date = Column(Date, nullable=False)
    total_score = Column(Float, nullable=False, default=100)
    exam_type = Column(String(20), nullable=False, default=ExamType.OTHER.value)
    status = Column(String(20), nullable=False, default=ExamStatus.NOT_STARTED.value)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    semester_id = Column(Integer, ForeignKey("semesters.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=func.now())

    # Relationships
    teacher = relationship("User", back_populates="exams", lazy="selectin")
    semester = relationship("Semester", back_populates="exams", lazy="selectin")
    scores = relationship("Score", back_populates="exam", passive_deletes=True)

    def __repr__(self):
        return f"<Exam(id={self.id}, subject='{self.subject}', class_name='{self.class_name}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "subject": self.subject,
            "class_name": self.class_name,
            "exam_date": self.exam_date.isoformat() if self.exam_date else None,
            "total_score": self.total_score,
            "exam_type": self.exam_type,
            "status": self.status,
            "teacher_id": self.teacher_id,
            "semester_id": self.semester_id,
        }


class Score(Base):
    """
    Scores table. One row per (student, exam).

    Attributes:
        id: Unique identifier
        student_id: Student who sat the exam
        exam_id: Exam the score belongs to
        user_id: User who entered the score
        score: Score value (null when nothing was recorded)
        is_absent: Whether the student missed the exam
        rank: Dense rank within the exam (null until computed)
    """
    __tablename__ = "scores"
    __table_args__ = (
        UniqueConstraint("student_id", "exam_id", name="uq_score_student_exam"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    score = Column(Float, nullable=True)
    is_absent = Column(Boolean, nullable=False, default=False)
    rank = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    # Relationships
    student = relationship("Student", back_populates="scores", lazy="selectin")
    exam = relationship("Exam", back_populates="scores", lazy="selectin")

    def __repr__(self):
        return f"<Score(id={self.id}, student_id={self.student_id}, exam_id={self.exam_id}, score={self.score})>"

    def to_dict(self):
        """Convert score to dictionary for API responses."""
        return {
            "id": self.id,
            "student_id": self.student_id,
            "student_name": self.student.name if self.student else None,
            "exam_id": self.exam_id,
            "exam_name": self.exam.name if self.exam else None,
            "user_id": self.user_id,
            "score": self.score,
            "is_absent": self.is_absent,
            "rank": self.rank,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
