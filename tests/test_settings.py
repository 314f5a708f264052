"""Tests for environment-based settings."""

from shootops.config.settings import Settings, get_settings


def test_defaults(monkeypatch):
    for var in (
        "SHOOTOPS_POLL_INTERVAL",
        "SHOOTOPS_WAIT_TIMEOUT",
        "SHOOTOPS_DNS_KEEP_PROVIDER_ON_MIGRATION",
        "SHOOTOPS_LOG_FORMAT",
    ):
        monkeypatch.delenv(var, raising=False)

    settings = Settings(_env_file=None)

    assert settings.poll_interval == 5.0
    assert settings.wait_timeout == 180.0
    assert settings.dns_entry_ttl_seconds == 120
    assert settings.dns_keep_provider_on_migration is False
    assert settings.log_format == "json"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SHOOTOPS_POLL_INTERVAL", "1.5")
    monkeypatch.setenv("SHOOTOPS_DNS_KEEP_PROVIDER_ON_MIGRATION", "true")
    monkeypatch.setenv("SHOOTOPS_SEED_PROVIDER_TYPE", "gcp")

    settings = Settings(_env_file=None)

    assert settings.poll_interval == 1.5
    assert settings.dns_keep_provider_on_migration is True
    assert settings.seed_provider_type == "gcp"


def test_env_file(tmp_path, monkeypatch):
    monkeypatch.delenv("SHOOTOPS_WAIT_TIMEOUT", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("SHOOTOPS_WAIT_TIMEOUT=42\n")

    assert Settings(_env_file=env_file).wait_timeout == 42.0


def test_operation_context():
    ctx = Settings(_env_file=None, poll_interval=2.0, severe_threshold=10.0, wait_timeout=60.0).operation_context()

    assert (ctx.interval, ctx.severe_threshold, ctx.timeout) == (2.0, 10.0, 60.0)
    assert ctx.deadline is None
    assert not ctx.cancelled


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
