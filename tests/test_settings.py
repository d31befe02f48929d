from unittest.mock import patch

import pytest
from pydantic import ValidationError

from api.config.settings import AuthMode, Settings, TopicProviderType, get_settings


def test_default_settings():
    """Test default settings values."""
    settings = Settings()

    assert settings.app_name == "Content Ops"
    assert settings.version == "1.0.0"
    assert settings.environment == "development"
    assert settings.debug is True
    assert settings.auth_mode == AuthMode.NONE
    assert settings.topic_provider == TopicProviderType.STUB


def test_queue_defaults():
    """Retry and cooldown defaults: 3 attempts, 5 minutes apart, 30 minute cooldown."""
    settings = Settings()

    assert settings.job_max_attempts == 3
    assert settings.job_retry_delay_s == 300
    assert settings.job_failure_cooldown_s == 1800
    assert settings.job_cooldown_error_markers == ["insufficient credits"]
    assert settings.plan_default_window_days == 30


def test_queue_settings_are_validated():
    with pytest.raises(ValidationError):
        Settings(job_poll_interval_s=0)
    with pytest.raises(ValidationError):
        Settings(job_max_attempts=0)


def test_plan_day_cap_is_bounded():
    """Generation never iterates more than a year per run."""
    assert Settings(plan_max_days=365).plan_max_days == 365
    with pytest.raises(ValidationError):
        Settings(plan_max_days=366)
    with pytest.raises(ValidationError):
        Settings(plan_max_days=0)


def test_production_validation_blocks_none_auth():
    """Test that production environment blocks AUTH_MODE=none."""
    with pytest.raises(ValueError, match="AUTH_MODE=none is not allowed in production"):
        Settings(environment="production", auth_mode=AuthMode.NONE)


def test_production_validation_blocks_dev_auth():
    """Test that production environment blocks AUTH_MODE=dev."""
    with pytest.raises(ValueError, match="AUTH_MODE=dev is not allowed in production"):
        Settings(environment="production", auth_mode=AuthMode.DEV)


def test_production_allows_oidc_auth():
    """Test that production environment allows AUTH_MODE=oidc."""
    settings = Settings(environment="production", auth_mode=AuthMode.OIDC)
    assert settings.environment == "production"
    assert settings.auth_mode == AuthMode.OIDC


def test_development_allows_all_auth_modes():
    """Test that development environment allows all auth modes."""
    for auth_mode in AuthMode:
        settings = Settings(environment="development", auth_mode=auth_mode)
        assert settings.auth_mode == auth_mode


def test_settings_dependency_injection():
    """Test the get_settings dependency function."""
    settings = get_settings()
    assert isinstance(settings, Settings)
    assert settings.app_name == "Content Ops"


@patch.dict(
    "os.environ",
    {"AUTH_MODE": "oidc", "ENVIRONMENT": "production", "JOB_RETRY_DELAY_S": "60"},
)
def test_env_var_loading():
    """Test that environment variables are loaded correctly."""
    settings = Settings()
    assert settings.auth_mode == AuthMode.OIDC
    assert settings.environment == "production"
    assert settings.job_retry_delay_s == 60
