import pytest

from tokenmeter.config import DEFAULT_API_URL, DEFAULT_CDN_URL, Config, validate_source_url
from tokenmeter.errors import PricingConfigError, TokenMeterError


class TestConfigFromEnv:
    def test_defaults(self, monkeypatch: "pytest.MonkeyPatch") -> "None":
        for name in (
            "TOKENMETER_PRICING_API_URL",
            "TOKENMETER_PRICING_CDN_URL",
            "TOKENMETER_OFFLINE",
            "TOKENMETER_FETCH_TIMEOUT",
            "TOKENMETER_CACHE_TIMEOUT",
            "TOKENMETER_LOG_LEVEL",
        ):
            monkeypatch.delenv(name, raising=False)
        config = Config.from_env()
        assert config.api_url == DEFAULT_API_URL
        assert config.cdn_url == DEFAULT_CDN_URL
        assert config.offline_mode is False
        assert config.fetch_timeout == 5.0
        assert config.cache_timeout == 300.0
        assert config.log_level == "info"

    def test_reads_env_vars(self, monkeypatch: "pytest.MonkeyPatch") -> "None":
        monkeypatch.setenv("TOKENMETER_PRICING_API_URL", "https://pricing.tokenmeter.dev/api/v2")
        monkeypatch.setenv("TOKENMETER_OFFLINE", "true")
        monkeypatch.setenv("TOKENMETER_FETCH_TIMEOUT", "2.5")
        monkeypatch.setenv("TOKENMETER_CACHE_TIMEOUT", "60")
        monkeypatch.setenv("TOKENMETER_LOG_LEVEL", "debug")
        config = Config.from_env()
        assert config.api_url == "https://pricing.tokenmeter.dev/api/v2"
        assert config.offline_mode is True
        assert config.fetch_timeout == 2.5
        assert config.cache_timeout == 60.0
        assert config.log_level == "debug"

    def test_non_numeric_timeout_raises(self, monkeypatch: "pytest.MonkeyPatch") -> "None":
        monkeypatch.setenv("TOKENMETER_FETCH_TIMEOUT", "soon")
        with pytest.raises(PricingConfigError, match="TOKENMETER_FETCH_TIMEOUT"):
            Config.from_env()


class TestValidate:
    def test_defaults_are_valid(self) -> "None":
        config = Config()
        assert config.validate() is config

    @pytest.mark.parametrize("value", [0, -1, 61, float("nan"), float("inf"), "5", True])
    def test_rejects_bad_fetch_timeout(self, value: "object") -> "None":
        with pytest.raises(PricingConfigError, match="Invalid fetch_timeout"):
            Config(fetch_timeout=value).validate()  # type: ignore[arg-type]

    def test_accepts_max_fetch_timeout(self) -> "None":
        Config(fetch_timeout=60).validate()

    @pytest.mark.parametrize("value", [0, -5, float("nan")])
    def test_rejects_bad_cache_timeout(self, value: "float") -> "None":
        with pytest.raises(PricingConfigError, match="Invalid cache_timeout"):
            Config(cache_timeout=value).validate()

    def test_error_is_a_value_error(self) -> "None":
        with pytest.raises(ValueError):
            Config(api_url="http://pricing.tokenmeter.dev").validate()
        assert issubclass(PricingConfigError, TokenMeterError)


class TestValidateSourceUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "https://pricing.tokenmeter.dev/api/v1",
            "https://cdn.jsdelivr.net/npm/tokenmeter/manifest.json",
            "https://unpkg.com/tokenmeter/manifest.json",
            "https://raw.githubusercontent.com/org/repo/main/manifest.json",
        ],
    )
    def test_allowed(self, url: "str") -> "None":
        assert validate_source_url(url, "api_url") == url

    def test_rejects_http(self) -> "None":
        with pytest.raises(PricingConfigError, match="only https"):
            validate_source_url("http://cdn.jsdelivr.net/x.json", "cdn_url")

    def test_rejects_unknown_host(self) -> "None":
        with pytest.raises(PricingConfigError, match="allow-list"):
            validate_source_url("https://evil.example.com/manifest.json", "cdn_url")

    def test_rejects_lookalike_host(self) -> "None":
        with pytest.raises(PricingConfigError):
            validate_source_url("https://cdn.jsdelivr.net.evil.com/x.json", "cdn_url")
