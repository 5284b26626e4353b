from datetime import date

from services.config import DEFAULT_MODEL, AppConfig
from services.usage_service import TokenUsageLog

ENV_VARS = [
    "MEXC_API_KEY", "MEXC_API_SECRET", "MEXC_BASE_URL", "MEXC_RECV_WINDOW", "MEXC_TIMEOUT",
    "MEXC_QUOTE_ASSET", "LITELLM_VISION_MODEL", "LITELLM_MODEL", "LITELLM_ANALYSIS_MODEL",
    "LITELLM_TIMEOUT", "RETAIN_REJECTED_IMAGES",
]


def _clear(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment(monkeypatch):
    _clear(monkeypatch)

    config = AppConfig.from_env()

    assert config.credentials is None
    assert config.mexc.base_url == "https://api.mexc.com"
    assert config.mexc.recv_window is None
    assert config.llm.model == DEFAULT_MODEL
    assert config.retain_rejected_images is True


def test_environment_overrides(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("MEXC_API_KEY", "mx0abc")
    monkeypatch.setenv("MEXC_API_SECRET", "secret")
    monkeypatch.setenv("MEXC_BASE_URL", "https://api.mexc.test/")
    monkeypatch.setenv("MEXC_RECV_WINDOW", "5000")
    monkeypatch.setenv("MEXC_TIMEOUT", "not-a-number")
    monkeypatch.setenv("LITELLM_MODEL", "gpt-4o")
    monkeypatch.setenv("RETAIN_REJECTED_IMAGES", "false")

    config = AppConfig.from_env()

    assert config.credentials.api_key == "mx0abc"
    assert "secret" not in repr(config.credentials)
    assert config.mexc.base_url == "https://api.mexc.test"
    assert config.mexc.recv_window == 5000
    assert config.mexc.timeout == 10.0
    assert config.llm.model == "gpt-4o"
    assert config.llm.analysis_model == "gpt-4o"
    assert config.retain_rejected_images is False


def test_usage_log_totals_per_day():
    usage = TokenUsageLog()
    usage.record(100, day=date(2024, 5, 1))
    usage.record(50, day=date(2024, 5, 1))
    usage.record(None, day=date(2024, 5, 2))
    usage(25)

    assert usage.total == 175
    assert usage.records()[0] == {"date": "2024-05-01", "tokens": 150}
