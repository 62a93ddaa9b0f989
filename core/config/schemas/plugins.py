"""Plugin lookup schema."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class PluginsConfig(BaseModel):
    # packages searched, in order, for a plugin named by string
    search_path: List[str] = Field(
        default_factory=lambda: ["stagehand.plugins"]
    )
    # applied right after the core stage, unknown names skipped
    enabled: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")
