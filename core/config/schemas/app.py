"""Application / server schemas: identity, bind address, environment."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AppConfig(BaseModel):
    name: str = "stagehand"
    # public address shown in the startup summary
    host: str = "http://127.0.0.1:3000"
    # interface the listener binds to
    bind: str = "127.0.0.1"
    port: int = Field(3000, ge=0, le=65535)
    env: str = "development"

    model_config = ConfigDict(extra="forbid")
