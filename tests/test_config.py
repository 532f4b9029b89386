import os

import pytest

from review_analysis.config import DEFAULT_DATABASE_URL, load_settings
from review_analysis.exceptions import ConfigurationError

ENV_VARS = [
    "DATABASE_URL", "LLM_PROVIDER", "OPENAI_API_KEY", "GEMINI_API_KEY", "LLM_MODEL",
    "OPENAI_BASE_URL", "LLM_TEMPERATURE", "INFERENCE_TIMEOUT_SECONDS",
    "ANALYSIS_CONCURRENCY", "ANALYSIS_WORKERS", "CORS_ORIGINS", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)


def test_defaults(tmp_path):
    settings = load_settings(env_file=str(tmp_path / "missing.env"))

    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.inference.provider == "openai"
    assert settings.inference.model == "gpt-4o-mini"
    assert settings.inference.timeout_seconds == 30.0
    assert settings.analysis_concurrency == 8


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("LLM_PROVIDER", "Gemini")
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")
    monkeypatch.setenv("INFERENCE_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("ANALYSIS_CONCURRENCY", "3")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")

    settings = load_settings(env_file=str(tmp_path / "missing.env"))

    assert settings.inference.provider == "gemini"
    assert settings.inference.api_key == "g-key"
    assert settings.inference.model == "gemini-2.5-flash"
    assert settings.inference.timeout_seconds == 5.0
    assert settings.analysis_concurrency == 3
    assert settings.cors_origins == ["https://a.example", "https://b.example"]


def test_env_file_is_loaded(tmp_path):
    env_file = tmp_path / ".env.test"
    env_file.write_text("OPENAI_API_KEY=from-file\nLLM_MODEL=gpt-test\n")

    try:
        settings = load_settings(env_file=str(env_file))
    finally:
        os.environ.pop("OPENAI_API_KEY", None)
        os.environ.pop("LLM_MODEL", None)

    assert settings.inference.api_key == "from-file"
    assert settings.inference.model == "gpt-test"


def test_unknown_provider_is_rejected(monkeypatch, tmp_path):
    monkeypatch.setenv("LLM_PROVIDER", "mystery")

    with pytest.raises(ConfigurationError):
        load_settings(env_file=str(tmp_path / "missing.env"))


def test_non_numeric_timeout_is_rejected(monkeypatch, tmp_path):
    monkeypatch.setenv("INFERENCE_TIMEOUT_SECONDS", "soon")

    with pytest.raises(ConfigurationError):
        load_settings(env_file=str(tmp_path / "missing.env"))
