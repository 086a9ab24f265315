from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./quizstake.db"

    # JWT (tokens are issued by the auth service; we only verify them)
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Frontend URL for CORS
    frontend_url: str = "http://localhost:5173"

    # Theory PDFs: absolute path to upload folder (empty = backend/uploads/theory)
    theory_upload_dir: str = ""
    theory_max_upload_bytes: int = 20 * 1024 * 1024

    # Tokens granted when an account is opened (written as an "initial" ledger entry)
    initial_token_grant: int = 100

    # Vertex AI (Gemini) for quiz question generation
    vertex_project_id: str = ""
    vertex_location: str = "us-central1"
    vertex_credentials_path: str = ""  # path to service account JSON; empty = use ADC
    gemini_model: str = "gemini-2.0-flash-lite"
    # tried in order when the primary model is quota-limited
    gemini_fallback_models: list[str] = ["gemini-2.0-flash", "gemini-flash-latest"]

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
