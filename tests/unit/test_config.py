import pytest

from completion_throttle.config import (
    DEFAULT_BASE_URL,
    MaintenanceConfig,
    ManagerConfig,
    ProviderSettings,
    QuotaConfig,
    RateLimiterConfig,
    RetryPolicy,
)


class TestProviderSettings:
    def test_defaults(self):
        settings = ProviderSettings()
        assert settings.api_key is None
        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.request_timeout == 30.0
        assert settings.quota_timeout == 10.0
        assert not settings.has_api_key

    def test_trailing_slash_stripped(self):
        settings = ProviderSettings(base_url="https://proxy.example.com/v1/")
        assert settings.base_url == "https://proxy.example.com/v1"

    def test_api_key_not_in_repr(self):
        settings = ProviderSettings(api_key="sk-secret-abcdefgh")
        assert "sk-secret" not in repr(settings)

    @pytest.mark.parametrize(
        "key,expected",
        [
            (None, None),
            ("short", "*****"),
            ("sk-test-1234567890abcd", "sk-...abcd"),
        ],
    )
    def test_masked_api_key(self, key, expected):
        assert ProviderSettings(api_key=key).masked_api_key == expected

    @pytest.mark.parametrize("field", ["request_timeout", "quota_timeout"])
    def test_non_positive_timeouts_rejected(self, field):
        with pytest.raises(ValueError, match=field):
            ProviderSettings(**{field: 0})

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env-12345678")
        monkeypatch.setenv("OPENAI_BASE_URL", "https://gateway.example.com/v1/")
        monkeypatch.setenv("OPENAI_ORG_ID", "org-abc")

        settings = ProviderSettings.from_env()

        assert settings.api_key == "sk-from-env-12345678"
        assert settings.base_url == "https://gateway.example.com/v1"
        assert settings.organization == "org-abc"

    def test_from_env_missing_values(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
        monkeypatch.setenv("OPENAI_ORG_ID", "")

        settings = ProviderSettings.from_env()

        assert settings.api_key is None
        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.organization is None


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.delay_schedule == (2.0, 4.0, 8.0)

    def test_delay_for(self):
        policy = RetryPolicy()
        assert [policy.delay_for(n) for n in range(0, 6)] == [0.0, 2.0, 4.0, 8.0, 8.0, 8.0]

    def test_frozen(self):
        policy = RetryPolicy()
        with pytest.raises(AttributeError):
            policy.max_retries = 5  # type: ignore[misc]

    @pytest.mark.parametrize(
        "kwargs,match",
        [
            ({"max_retries": -1}, "max_retries"),
            ({"delay_schedule": ()}, "delay_schedule"),
            ({"delay_schedule": (1.0, -2.0)}, "delay_schedule"),
        ],
    )
    def test_validation(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            RetryPolicy(**kwargs)


class TestRateLimiterConfig:
    def test_defaults(self):
        config = RateLimiterConfig()
        assert config.max_concurrent == 5
        assert config.requests_per_minute == 60
        assert config.min_spacing == 0.2
        assert config.reservoir_refresh_interval == 60.0

    @pytest.mark.parametrize(
        "kwargs,match",
        [
            ({"max_concurrent": 0}, "max_concurrent"),
            ({"requests_per_minute": 0}, "requests_per_minute"),
            ({"min_spacing": -0.1}, "min_spacing"),
            ({"reservoir_refresh_interval": 0}, "reservoir_refresh_interval"),
        ],
    )
    def test_validation(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            RateLimiterConfig(**kwargs)


class TestQuotaConfig:
    def test_defaults(self):
        config = QuotaConfig()
        assert config.cache_ttl == 300.0
        assert config.check_every_n_requests == 10
        assert (config.info_threshold, config.warning_threshold, config.critical_threshold) == (
            50.0,
            80.0,
            90.0,
        )

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ValueError, match="thresholds"):
            QuotaConfig(warning_threshold=95.0, critical_threshold=90.0)

    def test_check_cadence_must_be_positive(self):
        with pytest.raises(ValueError, match="check_every_n_requests"):
            QuotaConfig(check_every_n_requests=0)


class TestMaintenanceConfig:
    def test_defaults(self):
        config = MaintenanceConfig()
        assert config.status_report_interval == 300.0
        assert config.quota_refresh_interval == 1800.0
        assert config.watchdog_interval == 10.0
        assert config.high_concurrency_ratio == 0.8

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError, match="watchdog_interval"):
            MaintenanceConfig(watchdog_interval=0)

    @pytest.mark.parametrize("ratio", [0.0, 1.5])
    def test_ratio_bounds(self, ratio):
        with pytest.raises(ValueError, match="high_concurrency_ratio"):
            MaintenanceConfig(high_concurrency_ratio=ratio)


class TestManagerConfig:
    def test_defaults(self):
        config = ManagerConfig()
        assert config.metrics_enabled
        assert config.prometheus_port is None
        assert isinstance(config.retry, RetryPolicy)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env-12345678")
        config = ManagerConfig.from_env()
        assert config.provider.has_api_key
