"""Database models for course content.

Cassandra table definitions for:
- Courses: owned by an instructor
- Lessons: ordered content units of a course, optionally quizzes
- Quiz questions and answers: the answer key of a quiz lesson
- Lookup tables: lessons by course, in display order

Ownership is explicit: a course owns its lessons, a lesson owns its
questions, a question owns its answers. Cascading deletes are performed by
the service layer, partition by partition.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    instructor_id UUID,
    title TEXT,
    description TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# "order" is reserved in CQL, the column is called position
LESSON_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    id UUID PRIMARY KEY,
    course_id UUID,
    title TEXT,
    description TEXT,
    content TEXT,
    video_url TEXT,
    document_url TEXT,
    is_quiz BOOLEAN,
    position INT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Lessons of a course in sequence order (position is not unique)
LESSONS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_course (
    course_id UUID,
    position INT,
    lesson_id UUID,
    PRIMARY KEY (course_id, position, lesson_id)
) WITH CLUSTERING ORDER BY (position ASC, lesson_id ASC)
"""

QUIZ_QUESTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_questions (
    lesson_id UUID,
    question_id UUID,
    question_text TEXT,
    points INT,
    created_at TIMESTAMP,
    PRIMARY KEY (lesson_id, question_id)
)
"""

# Answers share the lesson partition so a whole answer key is one query
QUIZ_ANSWERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_answers (
    lesson_id UUID,
    question_id UUID,
    answer_id UUID,
    answer_text TEXT,
    is_correct BOOLEAN,
    PRIMARY KEY (lesson_id, question_id, answer_id)
)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    LESSON_TABLE_CQL,
    LESSONS_BY_COURSE_TABLE_CQL,
    QUIZ_QUESTIONS_TABLE_CQL,
    QUIZ_ANSWERS_TABLE_CQL,
]


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Course entity.

    Attributes:
        id: Unique identifier
        instructor_id: Instructor who owns the course
        title: Course title
        description: Course description
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        instructor_id: UUID,
        id: UUID | None = None,
        title: str = "",
        description: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.instructor_id = instructor_id
        self.title = (title or "").strip()
        self.description = description
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            instructor_id=row.instructor_id,
            title=row.title,
            description=row.description,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "instructor_id": self.instructor_id,
            "title": self.title,
            "description": self.description,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Course {self.title} instructor={self.instructor_id}>"


class Lesson:
    """Lesson entity, a sequenced unit of a course.

    Attributes:
        id: Unique identifier
        course_id: Owning course
        order: Sequence position inside the course (not unique)
        is_quiz: Whether the lesson is graded through quiz questions
        title: Lesson title
        description: Short description
        content: Text body
        video_url: Optional video location
        document_url: Optional document location
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        course_id: UUID,
        id: UUID | None = None,
        order: int = 0,
        is_quiz: bool = False,
        title: str = "",
        description: str | None = None,
        content: str | None = None,
        video_url: str | None = None,
        document_url: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.order = order
        self.is_quiz = bool(is_quiz)
        self.title = (title or "").strip()
        self.description = description
        self.content = content
        self.video_url = video_url
        self.document_url = document_url
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        """Create Lesson instance from Cassandra row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            order=row.position or 0,
            is_quiz=row.is_quiz or False,
            title=row.title,
            description=row.description,
            content=row.content,
            video_url=row.video_url,
            document_url=row.document_url,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "course_id": self.course_id,
            "order": self.order,
            "is_quiz": self.is_quiz,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "video_url": self.video_url,
            "document_url": self.document_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        kind = "quiz" if self.is_quiz else "lesson"
        return f"<Lesson {self.title} #{self.order} ({kind})>"


class QuizAnswer:
    """One answer option of a quiz question."""

    def __init__(
        self,
        question_id: UUID,
        id: UUID | None = None,
        answer_text: str = "",
        is_correct: bool = False,
    ):
        self.id = id or uuid4()
        self.question_id = question_id
        self.answer_text = answer_text
        self.is_correct = bool(is_correct)

    @classmethod
    def from_row(cls, row: Any) -> "QuizAnswer":
        """Create QuizAnswer instance from Cassandra row."""
        return cls(
            id=row.answer_id,
            question_id=row.question_id,
            answer_text=row.answer_text or "",
            is_correct=row.is_correct or False,
        )

    def __repr__(self) -> str:
        return f"<QuizAnswer {self.id} correct={self.is_correct}>"


class QuizQuestion:
    """Quiz question with its weighted answer key.

    Attributes:
        id: Unique identifier
        lesson_id: Owning quiz lesson
        question_text: Prompt shown to the student
        points: Positive weight of the question in the lesson score
        answers: Answer options, at least one flagged correct
    """

    def __init__(
        self,
        lesson_id: UUID,
        id: UUID | None = None,
        question_text: str = "",
        points: int = 1,
        answers: list[QuizAnswer] | None = None,
        created_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.lesson_id = lesson_id
        self.question_text = question_text
        self.points = points
        self.answers = answers or []
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)

    @property
    def correct_answer_ids(self) -> frozenset[UUID]:
        """Ids of the answers flagged correct."""
        return frozenset(a.id for a in self.answers if a.is_correct)

    def is_correct(self, answer_id: UUID | None) -> bool:
        """Check a submitted answer id against the key."""
        return answer_id is not None and answer_id in self.correct_answer_ids

    @classmethod
    def from_row(cls, row: Any) -> "QuizQuestion":
        """Create QuizQuestion (without answers) from Cassandra row."""
        return cls(
            id=row.question_id,
            lesson_id=row.lesson_id,
            question_text=row.question_text or "",
            points=row.points if row.points is not None else 0,
            created_at=row.created_at,
        )

    def __repr__(self) -> str:
        return f"<QuizQuestion {self.id} points={self.points} answers={len(self.answers)}>"
