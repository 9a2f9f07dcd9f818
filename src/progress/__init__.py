"""Student progress tracking module.

Provides:
- Lesson completion tracking (idempotent, first completion wins)
- Quiz grading with weighted questions
- Course progress aggregation and the completion hook
- Course enrollment management
"""

from .models import (
    PROGRESS_TABLES_CQL,
    Certificate,
    Enrollment,
    LessonProgress,
    LessonProgressStatus,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "Certificate",
    "Enrollment",
    "LessonProgress",
    "LessonProgressStatus",
]
