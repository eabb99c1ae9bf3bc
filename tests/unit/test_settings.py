import pytest
from pydantic import ValidationError

from app.config.settings import Settings


class TestSettingsDefaults:
    def test_default_app_env(self) -> None:
        s = Settings()
        assert s.app_env == "dev"

    def test_default_db_port(self) -> None:
        s = Settings()
        assert s.db_port == 5432

    def test_default_max_job_attempts(self) -> None:
        s = Settings()
        assert s.max_job_attempts == 3

    def test_default_worker_batch_size_is_unset(self) -> None:
        s = Settings()
        assert s.worker_batch_size is None

    def test_default_stale_after(self) -> None:
        s = Settings()
        assert s.stale_after_seconds == 900

    def test_default_pdf_engine(self) -> None:
        s = Settings()
        assert s.pdf_engine == "pdfplumber"

    def test_default_llm_provider_is_disabled(self) -> None:
        s = Settings()
        assert s.llm_provider == "none"

    def test_default_llm_fallback_confidence(self) -> None:
        s = Settings()
        assert s.llm_fallback_confidence == 0.7

    def test_default_llm_cache(self) -> None:
        s = Settings()
        assert s.llm_cache_backend == "postgres"
        assert s.llm_cache_ttl_days == 7


class TestSettingsFromEnv:
    def test_loads_app_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_ENV", "production")
        s = Settings()
        assert s.app_env == "production"

    def test_loads_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        s = Settings()
        assert s.log_level == "DEBUG"

    def test_loads_db_host(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_HOST", "db.example.com")
        s = Settings()
        assert s.db_host == "db.example.com"

    def test_loads_worker_concurrency(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WORKER_CONCURRENCY", "8")
        s = Settings()
        assert s.worker_concurrency == 8

    def test_loads_llm_provider(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_PROVIDER", "openrouter")
        monkeypatch.setenv("LLM_API_KEY", "sk-test")
        s = Settings()
        assert s.llm_provider == "openrouter"
        assert s.llm_api_key == "sk-test"

    def test_loads_llm_cache_ttl_days(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_CACHE_TTL_DAYS", "30")
        s = Settings()
        assert s.llm_cache_ttl_days == 30


class TestSettingsValidation:
    def test_invalid_db_port_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PORT", "not_a_number")
        with pytest.raises(ValidationError):
            Settings()

    def test_invalid_max_attempts_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_JOB_ATTEMPTS", "abc")
        with pytest.raises(ValidationError):
            Settings()

    def test_invalid_fallback_confidence_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_FALLBACK_CONFIDENCE", "high")
        with pytest.raises(ValidationError):
            Settings()
