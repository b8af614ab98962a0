"""Settings derived values."""

from conftest import make_settings


def test_environment_flags():
    assert make_settings(ENV="production").is_production
    assert make_settings(ENV="prod").is_production
    assert not make_settings(ENV="test").is_production
    assert make_settings(ENV="dev").is_development
    assert not make_settings(ENV="test").is_development


def test_cloudwatch_names_default_from_env():
    settings = make_settings(ENV="staging")
    assert settings.log_group == "staging-api"
    assert settings.log_stream == "staging-api"


def test_allowed_origins_are_split_and_trimmed():
    settings = make_settings(ALLOWED_ORIGINS="https://a.example, https://b.example ,")
    assert settings.allowed_origins == ["https://a.example", "https://b.example"]
