"""
Smoke tests for config / settings loading.
Run: python -m pytest tests/ -v
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from skill_quiz.config import get_settings, _is_placeholder


class TestIsPlaceholder:
    def test_empty_string_is_placeholder(self):
        assert _is_placeholder("")

    def test_angle_bracket_is_placeholder(self):
        assert _is_placeholder("<your-key-here>")

    def test_your_prefix_is_placeholder(self):
        assert _is_placeholder("your-endpoint")

    def test_literal_PLACEHOLDER_is_placeholder(self):
        assert _is_placeholder("PLACEHOLDER")

    def test_real_value_not_placeholder(self):
        assert not _is_placeholder("https://my-resource.openai.azure.com")

    def test_real_key_not_placeholder(self):
        assert not _is_placeholder("abc123defgh456ijkl789mnop")


class TestQuizDefaults:
    @pytest.fixture(autouse=True)
    def _clear_quiz_env(self, monkeypatch):
        for key in list(os.environ):
            if key.startswith("QUIZ_"):
                monkeypatch.delenv(key, raising=False)

    def test_questions_per_skill_default(self):
        assert get_settings().quiz.questions_per_skill == 10

    def test_timer_default_15_seconds(self):
        assert get_settings().quiz.time_limit_seconds == 15.0

    def test_advance_delays(self):
        q = get_settings().quiz
        assert q.answer_advance_delay == 0.5
        assert q.timeout_advance_delay == 1.5

    def test_poll_budget(self):
        q = get_settings().quiz
        assert q.poll_max_retries == 5
        assert q.poll_interval_seconds == 5.0

    def test_generation_knobs(self):
        q = get_settings().quiz
        assert q.generation_temperature == 0.9
        assert q.generation_timeout == 30.0

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("QUIZ_QUESTIONS_PER_SKILL", "4")
        monkeypatch.setenv("QUIZ_TIME_LIMIT_SECONDS", "20")
        q = get_settings().quiz
        assert q.questions_per_skill == 4
        assert q.time_limit_seconds == 20.0

    def test_db_path_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("QUIZ_DB_PATH", str(tmp_path / "x.db"))
        assert get_settings().database.path == tmp_path / "x.db"


class TestSettingsLoading:
    def test_get_settings_returns_object(self):
        s = get_settings()
        assert s is not None
        assert hasattr(s, "openai")
        assert hasattr(s, "azure")
        assert hasattr(s, "app")

    def test_force_mock_mode_set_by_conftest(self):
        assert get_settings().app.force_mock_mode is True

    def test_live_mode_off_when_mocked(self):
        assert get_settings().live_mode is False

    def test_live_mode_on_with_real_openai_key(self, monkeypatch):
        monkeypatch.setenv("FORCE_MOCK_MODE", "false")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-realistic-looking-key-123")
        assert get_settings().live_mode is True

    def test_placeholder_keys_not_configured(self, monkeypatch):
        monkeypatch.setenv("FORCE_MOCK_MODE", "false")
        monkeypatch.setenv("OPENAI_API_KEY", "<placeholder>")
        monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "<placeholder>")
        monkeypatch.setenv("AZURE_OPENAI_API_KEY", "<placeholder>")
        assert get_settings().live_mode is False

    def test_azure_deployment_default(self, monkeypatch):
        monkeypatch.delenv("AZURE_OPENAI_DEPLOYMENT", raising=False)
        assert get_settings().azure.deployment == "gpt-4o-mini"

    def test_endpoint_trailing_slash_stripped(self, monkeypatch):
        monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://r.openai.azure.com/")
        assert get_settings().azure.endpoint == "https://r.openai.azure.com"

    def test_status_summary_keys(self):
        summary = get_settings().status_summary()
        assert "Azure OpenAI" in summary
        assert "OpenAI" in summary
        assert "Fallback generator" in summary

    def test_log_level_uppercased(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert get_settings().app.log_level == "DEBUG"
