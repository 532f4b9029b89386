"""
config.py — environment-driven settings.
Everything is read once by load_settings() and passed down explicitly.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .exceptions import ConfigurationError

BASE_DIR = Path(__file__).resolve().parent.parent
DATABASE_PATH = BASE_DIR / "data" / "reviews.db"
DEFAULT_DATABASE_URL = f"sqlite+aiosqlite:///{DATABASE_PATH}"

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "gemini": "gemini-2.5-flash",
}
DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class InferenceConfig(BaseModel):
    provider: str = "openai"
    api_key: str = ""
    model: str = DEFAULT_MODELS["openai"]
    base_url: str = "https://api.openai.com/v1"
    temperature: float = 0.3
    timeout_seconds: float = Field(default=30.0, gt=0)


class Settings(BaseModel):
    database_url: str = DEFAULT_DATABASE_URL
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    analysis_concurrency: int = Field(default=8, ge=1)
    analysis_workers: int = Field(default=2, ge=1)
    cors_origins: list[str] = Field(default_factory=lambda: list(DEFAULT_ORIGINS))
    log_level: str = "INFO"


def _number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from the process environment (and a .env file if present)."""
    load_dotenv(env_file)

    provider = os.getenv("LLM_PROVIDER", "openai").strip().lower()
    if provider not in DEFAULT_MODELS:
        raise ConfigurationError(f"Unknown LLM_PROVIDER {provider!r}")
    key_var = "GEMINI_API_KEY" if provider == "gemini" else "OPENAI_API_KEY"

    inference = InferenceConfig(
        provider=provider,
        api_key=os.getenv(key_var, ""),
        model=os.getenv("LLM_MODEL") or DEFAULT_MODELS[provider],
        base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/"),
        temperature=_number("LLM_TEMPERATURE", 0.3, float),
        timeout_seconds=_number("INFERENCE_TIMEOUT_SECONDS", 30.0, float),
    )

    origins = os.getenv("CORS_ORIGINS")
    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        inference=inference,
        analysis_concurrency=_number("ANALYSIS_CONCURRENCY", 8, int),
        analysis_workers=_number("ANALYSIS_WORKERS", 2, int),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()] if origins else list(DEFAULT_ORIGINS),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
