"""Config subsystem public API.

Provides:
    get_config()        -> AggregatedConfig (schema_version + sections)
    as_dict()           -> dict representation
    load_env_files()    -> dotenv files loaded into the environment
    ConfigError         -> raised on validation / unknown key
"""

from core.exceptions import ConfigError  # noqa: F401

from .loader import (  # noqa: F401
    AggregatedConfig,
    get_config,
    as_dict,
    clear_config_cache,
    load_env_files,
)


__all__ = [
    "AggregatedConfig",
    "get_config",
    "as_dict",
    "ConfigError",
    "clear_config_cache",
    "load_env_files",
]
