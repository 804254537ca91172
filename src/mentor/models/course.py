"""
Course, lesson and mentor-lesson models.

These are the collaborators the mentor core reads from: a mentor-lesson
binds an AI mentor persona to a lesson, and the course author owns
the documents attached to it.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class MentorType(str, Enum):
    """Persona the mentor plays; selects the prompt template."""

    MENTOR = "mentor"
    TEACHER = "teacher"
    ROLEPLAY = "roleplay"


class UserRole(str, Enum):
    """Roles recognised by the mentor core."""

    STUDENT = "student"
    CONTENT_CREATOR = "content_creator"
    ADMIN = "admin"


# ============================================================================
# Pydantic Models (for API/validation)
# ============================================================================


class AiMentorLesson(BaseModel):
    """Mentor-lesson configuration as seen by prompts and the judge."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    lesson_id: str
    name: str
    instructions: str
    completion_conditions: str
    mentor_type: MentorType = Field(default=MentorType.MENTOR)


class MentorLessonContext(BaseModel):
    """Mentor-lesson joined with its lesson title, for prompt building."""

    title: str
    name: str
    instructions: str
    conditions: str
    mentor_type: MentorType


# ============================================================================
# SQLAlchemy Models (for database)
# ============================================================================


class CourseModel(Base, TimestampMixin):
    """SQLAlchemy model for courses table."""

    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author_id: Mapped[str] = mapped_column(String, nullable=False)

    lessons: Mapped[list["LessonModel"]] = relationship(
        "LessonModel", back_populates="course", cascade="all, delete-orphan"
    )


class LessonModel(Base, TimestampMixin):
    """SQLAlchemy model for lessons table."""

    __tablename__ = "lessons"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)

    course: Mapped["CourseModel"] = relationship("CourseModel", back_populates="lessons")


class AiMentorLessonModel(Base, TimestampMixin):
    """SQLAlchemy model for ai_mentor_lessons table."""

    __tablename__ = "ai_mentor_lessons"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    lesson_id: Mapped[str] = mapped_column(
        String, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="MentorAI")
    instructions: Mapped[str] = mapped_column(Text, nullable=False)
    completion_conditions: Mapped[str] = mapped_column(Text, nullable=False, default="")
    mentor_type: Mapped[str] = mapped_column(String(20), nullable=False, default="mentor")


class EnrollmentModel(Base, TimestampMixin):
    """Student enrollment in a course; consulted by the lesson access check."""

    __tablename__ = "enrollments"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("course_id", "student_id", name="uq_enrollments_course_student"),
        Index("idx_enrollments_student", "student_id"),
    )
