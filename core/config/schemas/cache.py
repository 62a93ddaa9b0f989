"""Cache schema (optional redis connection)."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class CacheConfig(BaseModel):
    enabled: bool = False
    url: str = "redis://127.0.0.1:6379/0"
    prefix: str = "stagehand:"
    ping_on_start: bool = False

    model_config = ConfigDict(extra="forbid")
