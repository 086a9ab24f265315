"""
Quiz attempt endpoints (Bearer token; user from JWT):
- GET  /api/quiz/{task_id}/attempt-info: history + cost of the next attempt
- POST /api/quiz/{task_id}/start: stake tokens, get 6 MCQs (no answers)
- POST /api/quiz/{task_id}/answer: answer one MCQ
- GET  /api/quiz/{task_id}/mcq-result: close MCQ phase, settle tokens once
- GET  /api/quiz/{task_id}/theory: theory questions (generated on first read)
- POST /api/quiz/{task_id}/submit-theory: upload solutions PDF (field: solutions)
- GET  /api/quiz/attempt/{attempt_id}/detail: full attempt view

Domain errors (quizstake.errors) are rendered by the handler in main.py.
"""
from fastapi import APIRouter, Depends, UploadFile, File, status
from sqlalchemy.orm import Session

from quizstake.auth import get_current_user
from quizstake.database import get_db
from quizstake.models.user import User
from quizstake.schemas.quiz import (
    AnswerRequest,
    AnswerResponse,
    AttemptDetailResponse,
    AttemptHistoryItem,
    AttemptInfoResponse,
    BreakdownItem,
    McqDetailItem,
    McqPublic,
    McqResultResponse,
    QuizStartResponse,
    TheoryQuestion,
    TheoryQuestionsResponse,
    TheorySubmitResponse,
)
from quizstake.services.question_generator import GeminiQuestionGenerator
from quizstake.services.quiz_machine import MAX_SCORE, PASS_THRESHOLD, TIME_LIMIT_MS
from quizstake.services.quiz_service import QuizService, mcq_breakdown, mcq_detail
from quizstake.services.theory_storage import TheoryStorage

router = APIRouter(prefix="/api/quiz", tags=["quiz"])


# ---------- Dependencies ----------


def get_quiz_service() -> QuizService:
    return QuizService(generator=GeminiQuestionGenerator())


def get_theory_storage() -> TheoryStorage:
    return TheoryStorage()


# ---------- Attempt info ----------


@router.get("/{task_id}/attempt-info", response_model=AttemptInfoResponse)
def get_attempt_info(
    task_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: QuizService = Depends(get_quiz_service),
):
    """Attempt history (newest first) and what the next attempt would cost."""
    info = service.get_attempt_info(db, user.id, task_id)
    info["history"] = [
        AttemptHistoryItem(
            attempt_number=a.attempt_number,
            stake=a.effective_stake,
            score=a.mcq_score,
            passed=a.mcq_passed,
            status=a.status,
            date=a.created_at,
        )
        for a in info["history"]
    ]
    return AttemptInfoResponse(**info)


# ---------- MCQ phase ----------


@router.post("/{task_id}/start", response_model=QuizStartResponse, status_code=status.HTTP_201_CREATED)
def start_quiz(
    task_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: QuizService = Depends(get_quiz_service),
):
    """
    Start an attempt. An abandoned in-progress attempt is refunded and replaced
    at the same attempt number. Stake decays per attempt: max(1, ceil(B * 0.6^(n-1))).
    """
    attempt = service.start_attempt(db, user.id, task_id)
    return QuizStartResponse(
        message=f"Quiz started! {attempt.effective_stake} tokens staked (attempt #{attempt.attempt_number}).",
        attempt_id=attempt.id,
        mcqs=[
            McqPublic(index=i, question=m["question"], options=m["options"], time_limit=TIME_LIMIT_MS // 1000)
            for i, m in enumerate(attempt.mcqs)
        ],
        pass_threshold=PASS_THRESHOLD,
        token_stake=attempt.effective_stake,
        attempt_number=attempt.attempt_number,
        original_stake=service.get_task_stake(db, task_id),
    )


@router.post("/{task_id}/answer", response_model=AnswerResponse)
def answer_question(
    task_id: str,
    body: AnswerRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: QuizService = Depends(get_quiz_service),
):
    """Answer one question. Late (past the cumulative deadline) or skipped answers score as unattempted."""
    response, remaining = service.answer_question(db, user.id, task_id, body.question_index, body.selected_answer)
    return AnswerResponse(
        question_index=response.question_index,
        points=response.points,
        is_correct=response.is_correct,
        remaining=remaining,
    )


@router.get("/{task_id}/mcq-result", response_model=McqResultResponse)
def get_mcq_result(
    task_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: QuizService = Depends(get_quiz_service),
):
    """
    First read closes the MCQ phase (unanswered = unattempted) and settles tokens.
    Re-reads return the same outcome without touching the ledger.
    """
    attempt = service.get_mcq_result(db, user.id, task_id)
    return McqResultResponse(
        score=attempt.mcq_score,
        max_score=MAX_SCORE,
        passed=attempt.mcq_passed,
        threshold=PASS_THRESHOLD,
        tokens_awarded=attempt.tokens_awarded,
        breakdown=[BreakdownItem(**row) for row in mcq_breakdown(attempt)],
    )


# ---------- Theory phase ----------


@router.get("/{task_id}/theory", response_model=TheoryQuestionsResponse)
def get_theory_questions(
    task_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: QuizService = Depends(get_quiz_service),
):
    """Theory questions for a passed MCQ phase. Generated once, then served from the attempt."""
    questions = service.get_theory_questions(db, user.id, task_id)
    return TheoryQuestionsResponse(
        questions=[TheoryQuestion(number=i + 1, question=q) for i, q in enumerate(questions)],
    )


@router.post("/{task_id}/submit-theory", response_model=TheorySubmitResponse)
def submit_theory(
    task_id: str,
    solutions: UploadFile = File(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: QuizService = Depends(get_quiz_service),
    storage: TheoryStorage = Depends(get_theory_storage),
):
    """Upload handwritten solutions as one PDF. Only while the attempt is theory_pending."""
    attempt = service.submit_theory(db, user.id, task_id, solutions, storage)
    return TheorySubmitResponse(
        message="Theory solutions submitted! Awaiting peer verification.",
        submitted_at=attempt.theory_submitted_at,
    )


# ---------- Attempt detail ----------


@router.get("/attempt/{attempt_id}/detail", response_model=AttemptDetailResponse)
def get_attempt_detail(
    attempt_id: str,
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: QuizService = Depends(get_quiz_service),
):
    """Full submission detail for review. Correct answers appear only once the attempt is settled."""
    a = service.get_attempt_detail(db, attempt_id)
    return AttemptDetailResponse(
        id=a.id,
        user_id=a.user_id,
        task_id=a.task_id,
        course_id=a.course_id,
        attempt_number=a.attempt_number,
        effective_stake=a.effective_stake,
        mcq_score=a.mcq_score,
        mcq_passed=a.mcq_passed,
        status=a.status,
        tokens_awarded=a.tokens_awarded,
        mcq_detail=[McqDetailItem(**row) for row in mcq_detail(a)],
        theory_questions=list(a.theory_questions or []),
        theory_submission_path=a.theory_submission_path,
        theory_submitted_at=a.theory_submitted_at,
        created_at=a.created_at,
    )
