"""Startup summary scraped by operational tooling.

Each fact is one line prefixed ``[stagehand]``; wording may change, the
set of facts may not.
"""
from __future__ import annotations

import platform
import time
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from stagehand.version import __version__

if TYPE_CHECKING:  # pragma: no cover
    from stagehand.application import Application

PREFIX = "[stagehand]"


@dataclass(frozen=True)
class StartupSummary:
    version: str
    host: str
    python_version: str
    platform: str
    environment: str
    boot_ms: int
    current_time: str
    address: str

    @classmethod
    def collect(cls, application: "Application") -> "StartupSummary":
        server = application.server
        return cls(
            version=__version__,
            host=application.settings.app.host,
            python_version=platform.python_version(),
            platform=f"{platform.system().lower()} {platform.machine()}",
            environment=application.settings.app.env,
            boot_ms=int((time.perf_counter() - application.boot_clock) * 1000),
            current_time=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            address=server.url if server is not None else "-",
        )

    def lines(self) -> list[str]:
        return [
            f"{PREFIX} Version: {self.version}",
            f"{PREFIX} Website: {self.host}",
            f"{PREFIX} Python Version: {self.python_version}",
            f"{PREFIX} Python Platform: {self.platform}",
            f"{PREFIX} Server Environment: {self.environment}",
            f"{PREFIX} Server Startup Time: {self.boot_ms}ms",
            f"{PREFIX} Server Current Time: {self.current_time}",
            f"{PREFIX} Server Running At: {self.address}",
        ]


__all__ = ["StartupSummary"]
