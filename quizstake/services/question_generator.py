"""
Gemini (Vertex AI) question generator: 6 MCQs + 7 theory prompts per user per task.
Uses google-genai client with Vertex AI. Each call produces fresh questions.

Every failure (config, quota, transport, malformed JSON) surfaces as
UpstreamGenerationFailure. The quiz service calls this before debiting the
stake, so a failure here never costs the user tokens.
"""
import json
import logging
import re
from pathlib import Path

from quizstake.config import get_settings
from quizstake.errors import UpstreamGenerationFailure
from quizstake.services.quiz_machine import MCQ_COUNT, OPTIONS_PER_QUESTION, THEORY_COUNT, TIME_LIMIT_MS

logger = logging.getLogger(__name__)

# Lazy client to avoid import/credentials errors at import time
_gemini_client = None


def _get_client():
    global _gemini_client
    if _gemini_client is not None:
        return _gemini_client
    try:
        from google import genai
        from google.oauth2 import service_account
    except ImportError as e:
        raise RuntimeError(
            "Google GenAI not installed. pip install google-genai google-auth"
        ) from e

    settings = get_settings()
    if not settings.vertex_project_id:
        raise RuntimeError("vertex_project_id is not configured")

    credentials = None
    if settings.vertex_credentials_path:
        path = Path(settings.vertex_credentials_path)
        if path.is_file():
            credentials = service_account.Credentials.from_service_account_file(
                str(path),
                scopes=["https://www.googleapis.com/auth/cloud-platform"],
            )

    _gemini_client = genai.Client(
        vertexai=True,
        project=settings.vertex_project_id,
        location=settings.vertex_location,
        credentials=credentials,
    )
    return _gemini_client


GENERATOR_SYSTEM_INSTRUCTION = """You write exam questions for university course quizzes.
Questions must be answerable from the course material, self-contained, and test conceptual understanding.
Output ONLY the JSON requested, with no commentary and no Markdown fences."""


def build_mcq_prompt(task_title: str, task_topic: str, course_name: str) -> str:
    seconds = TIME_LIMIT_MS // 1000
    return f"""Generate {MCQ_COUNT} UNIQUE conceptual MCQs for a rapid-fire quiz ({seconds}s per question).
Course: {course_name} | Topic: {task_topic} | Task: {task_title}

RULES:
- {MCQ_COUNT} MCQs, {OPTIONS_PER_QUESTION} options each (index 0-{OPTIONS_PER_QUESTION - 1}), mix of easy/medium/hard
- Test CONCEPTUAL understanding, not just recall
- correct_answer = index of the correct option
- Randomize correct answer positions
- Answerable in {seconds} seconds if the student knows the material

Output a JSON array:
[{{"question":"","options":["A","B","C","D"],"correct_answer":0}}]"""


def build_theory_prompt(task_title: str, task_topic: str, course_name: str) -> str:
    return f"""Generate {THEORY_COUNT} THEORY questions requiring HANDWRITTEN solutions (derivations, numericals, proofs, diagrams).
Course: {course_name} | Topic: {task_topic} | Task: {task_title}

RULES:
- {THEORY_COUNT} questions, mix of 2 easy + 3 medium + 2 hard
- Require pen-and-paper work: derivations, proofs, calculations, algorithm traces
- Self-contained with all necessary data
- 5-15 minutes each

Output a JSON array of strings:
["Question 1 text...","Question 2 text..."]"""


_FENCE_RE = re.compile(r"^```(?:json)?\s*|```\s*$", re.IGNORECASE)


def parse_json_reply(raw: str):
    """Model replies sometimes wrap JSON in ``` fences despite instructions."""
    return json.loads(_FENCE_RE.sub("", (raw or "").strip()).strip())


def validate_mcqs(data) -> list[dict]:
    if not isinstance(data, list) or len(data) != MCQ_COUNT:
        raise ValueError(f"Expected {MCQ_COUNT} MCQs, got {len(data) if isinstance(data, list) else type(data).__name__}")
    mcqs = []
    for m in data:
        if not isinstance(m, dict):
            raise ValueError("Invalid MCQ structure")
        question = m.get("question")
        options = m.get("options")
        # accept the camelCase key some models fall back to
        correct = m.get("correct_answer", m.get("correctAnswer"))
        if (
            not isinstance(question, str) or not question.strip()
            or not isinstance(options, list) or len(options) != OPTIONS_PER_QUESTION
            or not all(isinstance(o, str) for o in options)
            or not isinstance(correct, int) or isinstance(correct, bool)
            or not 0 <= correct < OPTIONS_PER_QUESTION
        ):
            raise ValueError("Invalid MCQ structure")
        mcqs.append({"question": question.strip(), "options": options, "correct_answer": correct})
    return mcqs


def validate_theory(data) -> list[str]:
    if not isinstance(data, list) or len(data) != THEORY_COUNT:
        raise ValueError(f"Expected {THEORY_COUNT} theory questions, got {len(data) if isinstance(data, list) else type(data).__name__}")
    if not all(isinstance(q, str) and q.strip() for q in data):
        raise ValueError("Theory questions must be non-empty strings")
    return [q.strip() for q in data]


def _is_quota_error(err: Exception) -> bool:
    message = str(err).lower()
    return "429" in message or "quota" in message or "resource_exhausted" in message


class GeminiQuestionGenerator:
    """Question generator backed by Gemini. Tries the fallback models in order on quota errors."""

    def __init__(self, models: list[str] | None = None):
        settings = get_settings()
        self._models = models or [settings.gemini_model, *settings.gemini_fallback_models]

    def _contents(self, prompt: str, book_pdf_path: str | None):
        from google.genai import types

        parts = []
        if book_pdf_path:
            path = Path(book_pdf_path)
            if path.is_file():
                parts.append(types.Part.from_bytes(data=path.read_bytes(), mime_type="application/pdf"))
            else:
                logger.warning("Course book not found, generating without it: %s", book_pdf_path)
        parts.append(types.Part.from_text(text=prompt))
        return [types.Content(role="user", parts=parts)]

    def _call(self, prompt: str, book_pdf_path: str | None) -> str:
        client = _get_client()
        from google.genai.types import GenerateContentConfig

        contents = self._contents(prompt, book_pdf_path)
        last_err: Exception | None = None
        for model in self._models:
            try:
                response = client.models.generate_content(
                    model=model,
                    contents=contents,
                    config=GenerateContentConfig(
                        system_instruction=GENERATOR_SYSTEM_INSTRUCTION,
                        temperature=0.9,
                        max_output_tokens=4096,
                        response_mime_type="application/json",
                    ),
                )
            except Exception as e:
                if _is_quota_error(e):
                    logger.warning("Question gen model %s quota exceeded", model)
                    last_err = e
                    continue
                raise
            if not response or not response.candidates:
                raise ValueError("Empty response from model")
            candidate = response.candidates[0]
            if not candidate.content or not candidate.content.parts:
                raise ValueError("No text in model response")
            logger.info("Question gen model: %s", model)
            return getattr(response, "text", None) or candidate.content.parts[0].text
        raise RuntimeError(f"All models quota-limited. {last_err}")

    def generate_mcqs(self, *, task_title: str, task_topic: str, course_name: str, book_pdf_path: str | None = None) -> list[dict]:
        try:
            raw = self._call(build_mcq_prompt(task_title, task_topic, course_name), book_pdf_path)
            return validate_mcqs(parse_json_reply(raw))
        except Exception as e:
            logger.exception("MCQ generation failed for task %r", task_title)
            raise UpstreamGenerationFailure(
                "Question generator temporarily unavailable. No tokens were deducted; please try again."
            ) from e

    def generate_theory_questions(
        self, *, task_title: str, task_topic: str, course_name: str, book_pdf_path: str | None = None
    ) -> list[str]:
        try:
            raw = self._call(build_theory_prompt(task_title, task_topic, course_name), book_pdf_path)
            return validate_theory(parse_json_reply(raw))
        except Exception as e:
            logger.exception("Theory generation failed for task %r", task_title)
            raise UpstreamGenerationFailure(
                "Question generator temporarily unavailable. Please try again."
            ) from e
