import os
from pathlib import Path

import pytest

from core import metrics
from core.config import ConfigError, as_dict, clear_config_cache, get_config


def _config_dir() -> Path:
    cfg_dir = Path(os.environ["STAGEHAND_CONFIG_DIR"])
    cfg_dir.mkdir(parents=True, exist_ok=True)
    return cfg_dir


def _env_dir() -> Path:
    return Path(os.environ["STAGEHAND_ENV_DIR"])


def _write(path: Path, content: str):
    path.write_text(content, encoding="utf-8")


def test_defaults_without_files():
    cfg = get_config()
    assert cfg.schema_version == 1
    assert cfg.app.port == 3000
    assert cfg.app.bind == "127.0.0.1"
    assert cfg.cache.enabled is False
    assert cfg.static.dir == "public"
    assert cfg.plugins.search_path == ["stagehand.plugins"]
    assert as_dict()["logging"] == {"level": "info", "format": "text"}


def test_cached_until_cleared():
    first = get_config()
    assert get_config() is first
    clear_config_cache()
    assert get_config() is not first


def test_base_then_overrides_local():
    cfg_dir = _config_dir()
    _write(cfg_dir / "base.yaml", "app:\n  port: 4000\n  env: staging\n")
    _write(cfg_dir / "overrides.local.yaml", "app:\n  port: 4100\n")
    cfg = get_config()
    assert cfg.app.port == 4100
    assert cfg.app.env == "staging"


def test_env_override_metric_and_logging(caplog):
    caplog.set_level("INFO", logger="stagehand.config")
    os.environ["STAGEHAND__APP__PORT"] = "8080"
    cfg = get_config()
    assert cfg.app.port == 8080
    counters = metrics.snapshot()["counters"]
    assert counters.get("env_override_total{path=app.port}") == 1
    assert "config-env-override" in caplog.text
    assert "path=app.port" in caplog.text
    assert "8080" not in caplog.text


def test_legacy_env_names():
    os.environ["APP_PORT"] = "8081"
    os.environ["REDIS"] = "yes"
    os.environ["REDIS_URL"] = "redis://cache:6379/1"
    os.environ["STATIC_DIR"] = "assets"
    os.environ["STATIC_MAXAGE"] = "3600"
    cfg = get_config()
    assert cfg.app.port == 8081
    assert cfg.cache.enabled is True
    assert cfg.cache.url == "redis://cache:6379/1"
    assert cfg.static.dir == "assets"
    assert cfg.static.max_age == 3600


def test_prefixed_env_wins_over_legacy():
    os.environ["APP_PORT"] = "8081"
    os.environ["STAGEHAND__APP__PORT"] = "9000"
    assert get_config().app.port == 9000


def test_dotenv_files_loaded_without_overriding_env():
    env_dir = _env_dir()
    _write(env_dir / ".env", "APP_PORT=7000\nAPP_BIND=0.0.0.0\n")
    os.environ["APP_BIND"] = "10.0.0.1"
    cfg = get_config()
    assert cfg.app.port == 7000
    assert cfg.app.bind == "10.0.0.1"


def test_environment_specific_dotenv():
    env_dir = _env_dir()
    _write(env_dir / ".env", "APP_PORT=7000\n")
    _write(env_dir / "staging.env", "APP_PORT=7200\nSTATIC_MAXAGE=60\n")
    os.environ["APP_ENV"] = "staging"
    cfg = get_config()
    # .env is loaded first and dotenv never overrides, so .env wins
    assert cfg.app.port == 7000
    assert cfg.static.max_age == 60
    assert cfg.app.env == "staging"


def test_environment_name_from_dotenv_selects_env_file():
    env_dir = _env_dir()
    _write(env_dir / ".env", "APP_ENV=production\n")
    _write(env_dir / "production.env", "APP_PORT=9999\n")
    cfg = get_config()
    assert cfg.app.env == "production"
    assert cfg.app.port == 9999


def test_numeric_looking_values_kept_for_string_fields():
    os.environ["STATIC_DIR"] = "2024"
    os.environ["APP_BIND"] = "0"
    os.environ["STAGEHAND__APP__ENV"] = "1"
    cfg = get_config()
    assert cfg.static.dir == "2024"
    assert cfg.app.bind == "0"
    assert cfg.app.env == "1"
    # non-string fields are still converted
    os.environ["STATIC_MAXAGE"] = "120"
    clear_config_cache()
    assert get_config().static.max_age == 120


def test_negative_max_age_rejected_with_metric():
    os.environ["STATIC_MAXAGE"] = "-1"
    with pytest.raises(ConfigError):
        get_config()
    counters = metrics.snapshot()["counters"]
    key = "config_validation_errors_total{code=config-out-of-range,path=static.max_age}"
    assert counters.get(key) == 1


def test_cache_url_scheme_checked_when_enabled():
    os.environ["REDIS"] = "1"
    os.environ["REDIS_URL"] = "http://cache"
    with pytest.raises(ConfigError) as exc:
        get_config()
    assert exc.value.error_type == "config-invalid"
    counters = metrics.snapshot()["counters"]
    assert counters.get(
        "config_validation_errors_total{code=config-invalid,path=cache.url}"
    ) == 1


def test_cache_url_not_checked_when_disabled():
    os.environ["REDIS_URL"] = "http://cache"
    assert get_config().cache.enabled is False


@pytest.mark.parametrize(
    "content",
    [
        "unknown_section:\n  a: 1\n",
        "app:\n  colour: red\n",
        "app:\n  port: 70000\n",
        "logging:\n  format: xml\n",
        "- not\n- a mapping\n",
        "app: [unclosed\n",
    ],
)
def test_invalid_config_files(content):
    _write(_config_dir() / "base.yaml", content)
    with pytest.raises(ConfigError):
        get_config()
