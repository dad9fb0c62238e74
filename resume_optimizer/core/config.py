import os
import logging
from pydantic import BaseModel, Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()

class AISettings(BaseModel):
    openrouter_api_key: Optional[str] = Field(default=os.getenv("OPENROUTER_API_KEY"))
    base_url: str = Field(default=os.getenv("AI_BASE_URL", "https://openrouter.ai/api/v1/chat/completions"))
    model_name: str = Field(default=os.getenv("AI_MODEL_NAME", "openai/gpt-4o"))
    fallback_model: str = Field(default=os.getenv("AI_FALLBACK_MODEL", "openai/gpt-4o-mini"))
    kill_switch: bool = Field(default=os.getenv("AI_KILL_SWITCH", "false").lower() == "true")
    http_timeout: float = float(os.getenv("AI_HTTP_TIMEOUT", "250"))
    max_attempts: int = int(os.getenv("AI_MAX_ATTEMPTS", "2"))
    temperature: float = 0.3

class PipelineSettings(BaseModel):
    """Per-step time budgets (seconds). Job resolution is bounded only by the fetch timeout."""
    job_fetch_timeout: float = float(os.getenv("JOB_FETCH_TIMEOUT", "20"))
    parse_timeout: float = float(os.getenv("PARSE_TIMEOUT", "60"))
    analysis_timeout: float = float(os.getenv("ANALYSIS_TIMEOUT", "30"))
    optimize_timeout: float = float(os.getenv("OPTIMIZE_TIMEOUT", "240"))
    metrics_timeout: float = float(os.getenv("METRICS_TIMEOUT", "30"))
    cover_letter_timeout: float = float(os.getenv("COVER_LETTER_TIMEOUT", "90"))

class StreamSettings(BaseModel):
    heartbeat_seconds: float = float(os.getenv("SSE_HEARTBEAT_SECONDS", "15"))
    max_lifetime_seconds: float = float(os.getenv("SSE_MAX_LIFETIME_SECONDS", "300"))

class Config(BaseModel):
    app_name: str = "Resume Optimizer"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "dev-only-insecure-key-DO-NOT-USE-IN-PROD")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    access_token_expire_minutes: int = 60 * 24  # 24 hours

    # Generation capability and pipeline
    ai: AISettings = AISettings()
    pipeline: PipelineSettings = PipelineSettings()
    stream: StreamSettings = StreamSettings()

    # Uploads
    max_upload_bytes: int = 5 * 1024 * 1024  # 5MB

    # CORS: comma-separated origins loaded from env.
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://localhost:5173,"
                "http://127.0.0.1:3000,http://127.0.0.1:5173",
            ).split(",")
            if o.strip()
        ]
    )

    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))
    optimize_rate_limit: str = os.getenv("OPTIMIZE_RATE_LIMIT", "10/minute")

settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    if "dev-only" in settings.secret_key:
        raise RuntimeError(
            "FATAL: SECRET_KEY must be set for non-development environments. "
            "Set it as an environment variable."
        )
else:
    if "dev-only" in settings.secret_key:
        _logger.warning("⚠ Using insecure default SECRET_KEY; only acceptable in development.")
