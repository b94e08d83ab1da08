"""Unit tests for settings, secrets and error types."""

import pytest

from config.errors import AnalysisFailedError, ErrorCode, TakeoffError, ValidationError
from config.secrets import clear_secret_cache, get_openai_api_key
from config.settings import Settings


@pytest.fixture
def clean_secrets():
    clear_secret_cache()
    yield
    clear_secret_cache()


class TestSettings:
    """Tests for environment-driven settings."""

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ANALYSIS_MAX_RETRIES", "5")
        monkeypatch.setenv("SALES_TAX_RATE", "0.0625")

        settings = Settings()

        assert settings.analysis_max_retries == 5
        assert settings.sales_tax_rate == 0.0625

    def test_validate_requires_api_key(self, monkeypatch, clean_secrets):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            Settings().validate()

    def test_validate_rejects_non_positive_timeout(self, monkeypatch, clean_secrets):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("ANALYSIS_TIMEOUT_SECONDS", "0")

        with pytest.raises(ValueError, match="ANALYSIS_TIMEOUT_SECONDS"):
            Settings().validate()

    def test_api_key_from_environment(self, monkeypatch, clean_secrets):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        assert get_openai_api_key() == "sk-test"
        assert Settings().openai_api_key == "sk-test"


class TestErrors:
    """Tests for the error taxonomy."""

    def test_to_dict(self):
        error = ValidationError("At least one blueprint image is required", field="images")

        assert error.to_dict() == {
            "code": ErrorCode.VALIDATION_ERROR,
            "message": "At least one blueprint image is required",
            "details": {"field": "images"},
        }

    @pytest.mark.parametrize("code,transient", [
        (ErrorCode.LLM_TIMEOUT, True),
        (ErrorCode.LLM_RATE_LIMIT, True),
        (ErrorCode.LLM_CONNECTION_ERROR, True),
        (ErrorCode.LLM_ERROR, True),
        (ErrorCode.LLM_CONTEXT_TOO_LONG, False),
        (ErrorCode.VALIDATION_ERROR, False),
    ])
    def test_transient_codes(self, code, transient):
        assert TakeoffError(code=code, message="x").is_transient is transient

    def test_analysis_failed_error(self):
        error = AnalysisFailedError("Blueprint analysis failed", attempts=1, last_error_code=ErrorCode.LLM_ERROR)

        assert error.message == "Blueprint analysis failed (after 1 attempt)"
        assert error.details["last_error_code"] == ErrorCode.LLM_ERROR
        assert "try again" in error.user_message.lower()
