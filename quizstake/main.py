import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from quizstake.config import get_settings
from quizstake.errors import QuizError
from quizstake.routers import quiz, users

settings = get_settings()
logger = logging.getLogger(__name__)

app = FastAPI(title="Quizstake API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QuizError)
def quiz_error_handler(request: Request, exc: QuizError):
    if exc.status_code >= 500:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.include_router(quiz.router)
app.include_router(users.router)


@app.get("/")
def root():
    return {"message": "Quizstake API", "docs": "/docs"}
