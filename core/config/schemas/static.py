"""Static asset fallback schema."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StaticConfig(BaseModel):
    dir: str | None = "public"
    max_age: int = 0
    html: bool = True

    model_config = ConfigDict(extra="forbid")
