"""Configuration loading & validation.

Precedence (last wins):
    base.yaml → overrides.local.yaml → dotenv files → legacy flat env names
    → ENV (STAGEHAND__SECTION__KEY).

Dotenv files never override variables already present in the process
environment. Unknown sub-schema keys are rejected.
"""
from __future__ import annotations

import logging
import os
import pathlib
import threading
from functools import lru_cache
from typing import Any, Dict, Type, get_args

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from core import metrics
from core.errors import validate_error_type
from core.exceptions import ConfigError

from .schemas.app import AppConfig
from .schemas.cache import CacheConfig
from .schemas.static import StaticConfig
from .schemas.observability import LoggingConfig
from .schemas.plugins import PluginsConfig

logger = logging.getLogger("stagehand.config")


class AggregatedConfig(BaseModel):
    schema_version: int = 1
    app: AppConfig = AppConfig()
    cache: CacheConfig = CacheConfig()
    static: StaticConfig = StaticConfig()
    logging: LoggingConfig = LoggingConfig()
    plugins: PluginsConfig = PluginsConfig()

    model_config = ConfigDict(extra="forbid")


DEFAULT_CONFIG_DIR = "configs"
ENV_PREFIX = "STAGEHAND__"

# Flat variable names understood for compatibility with plain .env files.
LEGACY_ENV_KEYS: Dict[str, str] = {
    "APP_PORT": "app.port",
    "APP_HOST": "app.host",
    "APP_BIND": "app.bind",
    "APP_ENV": "app.env",
    "REDIS": "cache.enabled",
    "REDIS_URL": "cache.url",
    "STATIC_DIR": "static.dir",
    "STATIC_MAXAGE": "static.max_age",
}

SUB_SCHEMA_CLASSES: Dict[str, Type[BaseModel]] = {
    "app": AppConfig,
    "cache": CacheConfig,
    "static": StaticConfig,
    "logging": LoggingConfig,
    "plugins": PluginsConfig,
}

_CACHE_URL_SCHEMES = ("redis://", "rediss://", "unix://")


def _load_yaml_if_exists(path: pathlib.Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path.name}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping")
    return data


def _merge_dict(
    base: Dict[str, Any], override: Dict[str, Any]
) -> Dict[str, Any]:
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k] = _merge_dict(base[k], v)
        else:
            base[k] = v
    return base


def _cast(value: str) -> Any:
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        return int(value)
    except ValueError:
        try:
            return float(value)
        except ValueError:
            return value


def _is_text_field(path_parts: list[str]) -> bool:
    """True when the target field is declared as a string."""
    if len(path_parts) != 2:
        return False
    schema = SUB_SCHEMA_CLASSES.get(path_parts[0])
    field = schema.model_fields.get(path_parts[1]) if schema else None
    if field is None:
        return False
    return field.annotation is str or str in get_args(field.annotation)


def _env_value(path_parts: list[str], value: str) -> Any:
    # string fields keep the raw text, even when it looks numeric
    return value if _is_text_field(path_parts) else _cast(value)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on", "y", "t"}
    return bool(value)


def _set_path(cfg: Dict[str, Any], path_parts: list[str], value: Any) -> None:
    target = cfg
    for part in path_parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            target[part] = {}
        target = target[part]
    target[path_parts[-1]] = value


def _record_override(dotted_path: str, source: str) -> None:
    metrics.inc("env_override_total", {"path": dotted_path})
    logger.info(
        "[config-env-override] path=%s value=*** source=%s",
        dotted_path,
        source,
    )


def _apply_legacy_env(cfg: Dict[str, Any]) -> None:
    for env_key, dotted in LEGACY_ENV_KEYS.items():
        value = os.environ.get(env_key)
        if value is None or value == "":
            continue
        path_parts = dotted.split(".")
        _set_path(cfg, path_parts, _env_value(path_parts, value))
        _record_override(dotted, env_key)


def _apply_env(cfg: Dict[str, Any]) -> None:
    prefix_len = len(ENV_PREFIX)
    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        path_parts = env_key[prefix_len:].lower().split("__")
        _set_path(cfg, path_parts, _env_value(path_parts, value))
        _record_override(".".join(path_parts), "env")


_lock = threading.Lock()


def _resolve_config_dir() -> pathlib.Path:
    """Resolve config directory each call honoring env var changes."""
    return pathlib.Path(os.getenv("STAGEHAND_CONFIG_DIR", DEFAULT_CONFIG_DIR))


def load_env_files() -> list[pathlib.Path]:
    """Load ``.env`` and ``<env>.env`` without overriding set variables.

    Returns the files that were found, in load order.
    """
    env_dir = pathlib.Path(os.getenv("STAGEHAND_ENV_DIR", "."))
    loaded = []
    base = env_dir / ".env"
    if base.is_file():
        load_dotenv(base, override=False)
        loaded.append(base)
    # read after .env so the environment name may come from it
    env_name = os.getenv("APP_ENV", "development")
    specific = env_dir / f"{env_name}.env"
    if specific.is_file():
        load_dotenv(specific, override=False)
        loaded.append(specific)
    return loaded


def _normalize_and_validate(raw: Dict[str, Any]) -> None:
    """Cross-field checks the per-section schemas cannot express.

    Emits metrics on violations and raises ConfigError if any.
      - static.max_age >= 0
      - cache.url uses a redis scheme when cache.enabled
    """
    errors: list[tuple[str, str, str]] = []  # (path, code, msg)

    static = raw.get("static") or {}
    max_age = static.get("max_age") if isinstance(static, dict) else None
    if isinstance(max_age, (int, float)) and max_age < 0:
        errors.append(
            ("static.max_age", "config-out-of-range", ">=0 required")
        )

    cache = raw.get("cache") or {}
    if isinstance(cache, dict) and _truthy(cache.get("enabled")):
        url = str(cache.get("url") or CacheConfig().url)
        if not url.startswith(_CACHE_URL_SCHEMES):
            errors.append(
                ("cache.url", "config-invalid", "redis url scheme required")
            )

    if errors:
        for path, code, _ in errors:
            validate_error_type(code)
            metrics.inc(
                "config_validation_errors_total",
                {"path": path, "code": code},
            )
        details = ", ".join(f"{p}:{c}:{m}" for p, c, m in errors)
        raise ConfigError(f"config validation failed: {details}")


def _validate_sub_schemas(raw: Dict[str, Any]) -> Dict[str, Any]:
    validated: Dict[str, Any] = {}
    for name, cls in SUB_SCHEMA_CLASSES.items():
        if name in raw:
            try:
                validated[name] = cls.model_validate(raw[name] or {})
            except Exception as e:  # noqa: BLE001
                raise ConfigError(
                    f"Validation failed for section '{name}': {e}"
                ) from e
    return validated


@lru_cache(maxsize=1)
def get_config() -> AggregatedConfig:  # noqa: D401
    with _lock:
        cfg_dir = _resolve_config_dir()
        base_cfg = _load_yaml_if_exists(cfg_dir / "base.yaml")
        overrides_cfg = _load_yaml_if_exists(cfg_dir / "overrides.local.yaml")
        merged = _merge_dict(base_cfg, overrides_cfg)
        load_env_files()
        _apply_legacy_env(merged)
        _apply_env(merged)
        merged.setdefault("schema_version", 1)
        _normalize_and_validate(merged)
        validated_sub = _validate_sub_schemas(merged)
        try:
            agg = AggregatedConfig.model_validate(
                {**merged, **validated_sub}
            )
        except Exception as e:  # noqa: BLE001
            raise ConfigError(str(e)) from e
        return agg


def clear_config_cache() -> None:
    """Clear cached config (primarily for tests)."""
    get_config.cache_clear()


def as_dict() -> Dict[str, Any]:
    return get_config().model_dump()
