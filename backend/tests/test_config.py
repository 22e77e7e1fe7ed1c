"""Tests for configuration validation.

Settings are constructed directly (without the .env file) so each test sees
only the values it passes in.
"""

import pytest
from pydantic import ValidationError

from app.core.config import MIN_JWT_SECRET_LENGTH, Settings


def make_settings(**kwargs) -> Settings:
    kwargs.setdefault("jwt_secret_key", "k" * MIN_JWT_SECRET_LENGTH)
    return Settings(_env_file=None, **kwargs)


class TestJwtSecretValidation:
    def test_valid_secret_accepted(self):
        settings = make_settings(jwt_secret_key="a" * 64)
        assert settings.effective_jwt_secret_key == "a" * 64

    def test_short_secret_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            make_settings(jwt_secret_key="too-short")

        assert "32" in str(exc_info.value)

    def test_empty_secret_uses_generated_fallback(self):
        settings = make_settings(jwt_secret_key="")

        secret = settings.effective_jwt_secret_key
        assert len(secret) >= MIN_JWT_SECRET_LENGTH
        # Stable for the lifetime of the settings object
        assert settings.effective_jwt_secret_key == secret

    def test_fallback_differs_between_instances(self):
        first = make_settings(jwt_secret_key="")
        second = make_settings(jwt_secret_key="")
        assert first.effective_jwt_secret_key != second.effective_jwt_secret_key


class TestJwtAlgorithmValidation:
    @pytest.mark.parametrize("algorithm", ["HS256", "HS384", "HS512"])
    def test_hmac_algorithms_accepted(self, algorithm):
        assert make_settings(jwt_algorithm=algorithm).jwt_algorithm == algorithm

    @pytest.mark.parametrize("algorithm", ["none", "RS256", "ES256", "hs256"])
    def test_other_algorithms_rejected(self, algorithm):
        with pytest.raises(ValidationError):
            make_settings(jwt_algorithm=algorithm)


class TestOtherSettings:
    def test_defaults(self):
        settings = make_settings()
        assert settings.jwt_expiration_hours == 24
        assert settings.jwt_issuer == "transaction-tracker"
        assert settings.token_touch_interval_seconds == 60
        assert settings.token_cleanup_interval_seconds == 3600

    def test_log_level_normalized(self):
        assert make_settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(log_level="verbose")

    def test_negative_touch_interval_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(token_touch_interval_seconds=-1)

    def test_zero_cleanup_interval_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(token_cleanup_interval_seconds=0)

    def test_cors_origins_list(self):
        settings = make_settings(cors_origins=" https://a.example.com , ,https://b.example.com")
        assert settings.cors_origins_list == ["https://a.example.com", "https://b.example.com"]


class TestSecurityConfigurationWarnings:
    def test_secure_configuration_has_no_warnings(self):
        assert make_settings().check_security_configuration() == []

    def test_missing_secret_warns(self):
        warnings = make_settings(jwt_secret_key="").check_security_configuration()
        assert any("JWT_SECRET_KEY" in w for w in warnings)

    def test_debug_and_wildcard_cors_warn(self):
        warnings = make_settings(debug=True, cors_origins="*").check_security_configuration()
        assert len(warnings) == 2
