from quizstake.models.user import User, UserRole
from quizstake.models.course import Course
from quizstake.models.task import Task, TaskStatus
from quizstake.models.quiz_attempt import QuizAttempt, AttemptStatus
from quizstake.models.token_ledger import TokenLedger, LedgerEntryType
from quizstake.models.course_proficiency import CourseProficiency

__all__ = [
    "User", "UserRole", "Course", "Task", "TaskStatus", "QuizAttempt", "AttemptStatus",
    "TokenLedger", "LedgerEntryType", "CourseProficiency",
]
