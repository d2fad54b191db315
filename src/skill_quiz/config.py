"""
config.py — Central settings for the Skill Quiz engine
======================================================
All configuration is loaded from environment variables / .env file.
Copy .env.example → .env and fill in your values.

Live generation activates automatically when either the Azure OpenAI pair
(AZURE_OPENAI_ENDPOINT + AZURE_OPENAI_API_KEY) or OPENAI_API_KEY holds a
real (non-placeholder) value.  Otherwise every question comes from the
deterministic fallback generator.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env into os.environ (no-op if already set, safe to call multiple times)
load_dotenv(override=False)

_DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent.parent / "skill_quiz_data.db"


# ─── Helpers ────────────────────────────────────────────────────────────────

def _is_placeholder(value: str) -> bool:
    """Return True if the value looks like an unfilled template placeholder."""
    return not value or "<" in value or value.startswith("your-") or value == "PLACEHOLDER"


# ─── Azure OpenAI (tier 1) ───────────────────────────────────────────────────

@dataclass(frozen=True)
class AzureOpenAIConfig:
    endpoint:    str
    api_key:     str
    deployment:  str
    api_version: str

    @property
    def is_configured(self) -> bool:
        """True when both endpoint and key are real (non-placeholder) values."""
        return (
            bool(self.endpoint)
            and bool(self.api_key)
            and not _is_placeholder(self.endpoint)
            and not _is_placeholder(self.api_key)
        )


# ─── OpenAI (tier 2) ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class OpenAIConfig:
    api_key: str
    model:   str

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and not _is_placeholder(self.api_key)


# ─── Quiz behaviour ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class QuizConfig:
    questions_per_skill:    int
    time_limit_seconds:     float   # per-question countdown
    answer_advance_delay:   float   # debounce after an explicit answer
    timeout_advance_delay:  float   # pause after a forced timeout answer
    poll_max_retries:       int
    poll_interval_seconds:  float
    generation_timeout:     float   # seconds before the LLM call is abandoned
    generation_temperature: float


# ─── Storage ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DatabaseConfig:
    path: Path


# ─── App-level settings ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class AppConfig:
    force_mock_mode: bool
    log_level:       str


# ─── Master settings object ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Settings:
    azure:    AzureOpenAIConfig
    openai:   OpenAIConfig
    quiz:     QuizConfig
    database: DatabaseConfig
    app:      AppConfig

    @property
    def live_mode(self) -> bool:
        """True when an LLM tier is configured and FORCE_MOCK_MODE is false."""
        return (self.azure.is_configured or self.openai.is_configured) and not self.app.force_mock_mode

    def status_summary(self) -> dict[str, str]:
        """Return a dict of service → status badge for the CLI banner."""
        def badge(ok: bool) -> str:
            return "🟢 Live" if ok else "⚪ Not configured"

        return {
            "Azure OpenAI":        badge(self.azure.is_configured),
            "OpenAI":              badge(self.openai.is_configured),
            "Fallback generator":  "🟢 Always on",
            "Mock mode forced":    "yes" if self.app.force_mock_mode else "no",
        }


def get_settings() -> Settings:
    """Load all configuration from environment variables."""
    _str   = lambda k, d="": os.getenv(k, d).strip()
    _int   = lambda k, d=0: int(os.getenv(k, str(d)) or d)
    _float = lambda k, d=0.0: float(os.getenv(k, str(d)) or d)
    _bool  = lambda k, d=False: os.getenv(k, str(d)).lower() in ("1", "true", "yes")

    return Settings(
        azure=AzureOpenAIConfig(
            endpoint    = _str("AZURE_OPENAI_ENDPOINT").rstrip("/"),
            api_key     = _str("AZURE_OPENAI_API_KEY"),
            deployment  = _str("AZURE_OPENAI_DEPLOYMENT", "gpt-4o-mini"),
            api_version = _str("AZURE_OPENAI_API_VERSION", "2024-12-01-preview"),
        ),
        openai=OpenAIConfig(
            api_key = _str("OPENAI_API_KEY"),
            model   = _str("OPENAI_MODEL", "gpt-4o-mini"),
        ),
        quiz=QuizConfig(
            questions_per_skill    = _int("QUIZ_QUESTIONS_PER_SKILL", 10),
            time_limit_seconds     = _float("QUIZ_TIME_LIMIT_SECONDS", 15.0),
            answer_advance_delay   = _float("QUIZ_ANSWER_ADVANCE_DELAY", 0.5),
            timeout_advance_delay  = _float("QUIZ_TIMEOUT_ADVANCE_DELAY", 1.5),
            poll_max_retries       = _int("QUIZ_POLL_MAX_RETRIES", 5),
            poll_interval_seconds  = _float("QUIZ_POLL_INTERVAL_SECONDS", 5.0),
            generation_timeout     = _float("QUIZ_GENERATION_TIMEOUT", 30.0),
            generation_temperature = _float("QUIZ_GENERATION_TEMPERATURE", 0.9),
        ),
        database=DatabaseConfig(
            path = Path(_str("QUIZ_DB_PATH") or _DEFAULT_DB_PATH),
        ),
        app=AppConfig(
            force_mock_mode = _bool("FORCE_MOCK_MODE", False),
            log_level       = _str("LOG_LEVEL", "INFO").upper(),
        ),
    )
