"""Pydantic schemas for course management.

Request and response models for:
- Courses: create, read, delete
- Lessons: CRUD operations
- Quiz questions: authoring and listing
"""

from datetime import datetime
from typing import Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.courses.models import Course, Lesson, QuizQuestion


# ==============================================================================
# Course Schemas
# ==============================================================================


class CreateCourseRequest(BaseModel):
    """Course creation request."""

    title: str = Field(..., min_length=3, max_length=200, description="Course title")
    description: str | None = Field(
        None, max_length=5000, description="Course description"
    )


class CourseResponse(BaseModel):
    """Course response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    instructor_id: UUID
    title: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    lesson_count: int = 0

    @classmethod
    def from_entity(cls, course: Course, lesson_count: int = 0) -> "CourseResponse":
        """Create response from entity."""
        return cls(**course.to_dict(), lesson_count=lesson_count)


# ==============================================================================
# Lesson Schemas
# ==============================================================================


class CreateLessonRequest(BaseModel):
    """Lesson creation request."""

    course_id: UUID = Field(..., description="Owning course")
    title: str = Field(..., min_length=3, max_length=200, description="Lesson title")
    description: str | None = Field(
        None, max_length=5000, description="Lesson description"
    )
    content: str | None = Field(None, description="Text body")
    video_url: str | None = Field(None, max_length=1000, description="Video URL")
    document_url: str | None = Field(None, max_length=1000, description="Document URL")
    is_quiz: bool = Field(False, description="Graded through quiz questions")
    order: int = Field(0, ge=0, description="Sequence position in the course")


class UpdateLessonRequest(BaseModel):
    """Lesson update request (only provided fields change)."""

    title: str | None = Field(
        None, min_length=3, max_length=200, description="Lesson title"
    )
    description: str | None = Field(
        None, max_length=5000, description="Lesson description"
    )
    content: str | None = Field(None, description="Text body")
    video_url: str | None = Field(None, max_length=1000, description="Video URL")
    document_url: str | None = Field(None, max_length=1000, description="Document URL")
    is_quiz: bool | None = Field(None, description="Graded through quiz questions")
    order: int | None = Field(None, ge=0, description="Sequence position")


class LessonResponse(BaseModel):
    """Lesson response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    title: str
    description: str | None = None
    content: str | None = None
    video_url: str | None = None
    document_url: str | None = None
    is_quiz: bool
    order: int
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, lesson: Lesson) -> "LessonResponse":
        """Create response from entity."""
        return cls(**lesson.to_dict())


class LessonListResponse(BaseModel):
    """Lessons of a course, in sequence order."""

    items: list[LessonResponse]
    total: int


# ==============================================================================
# Quiz Schemas
# ==============================================================================


class CreateQuizAnswerRequest(BaseModel):
    """One answer option of a new question."""

    answer_text: str = Field(..., min_length=1, max_length=1000)
    is_correct: bool = False


class CreateQuizQuestionRequest(BaseModel):
    """Quiz question creation request.

    Single correct answer model: exactly one option must be flagged correct.
    """

    question_text: str = Field(..., min_length=1, max_length=2000)
    points: int = Field(1, gt=0, description="Weight of the question in the score")
    answers: list[CreateQuizAnswerRequest] = Field(..., min_length=2)

    @model_validator(mode="after")
    def validate_single_correct_answer(self) -> Self:
        """Exactly one answer must be correct."""
        correct = sum(1 for answer in self.answers if answer.is_correct)
        if correct != 1:
            raise ValueError("A questao deve ter exatamente uma resposta correta")
        return self


class QuizAnswerResponse(BaseModel):
    """Answer option; is_correct is hidden (None) from students."""

    id: UUID
    answer_text: str
    is_correct: bool | None = None


class QuizQuestionResponse(BaseModel):
    """Quiz question response."""

    id: UUID
    lesson_id: UUID
    question_text: str
    points: int
    answers: list[QuizAnswerResponse]

    @classmethod
    def from_entity(
        cls, question: QuizQuestion, include_key: bool = False
    ) -> "QuizQuestionResponse":
        """Create response from entity, with the answer key only if requested."""
        return cls(
            id=question.id,
            lesson_id=question.lesson_id,
            question_text=question.question_text,
            points=question.points,
            answers=[
                QuizAnswerResponse(
                    id=answer.id,
                    answer_text=answer.answer_text,
                    is_correct=answer.is_correct if include_key else None,
                )
                for answer in question.answers
            ],
        )


class QuizQuestionListResponse(BaseModel):
    """Questions of a quiz lesson."""

    items: list[QuizQuestionResponse]
    total: int
    total_points: int
