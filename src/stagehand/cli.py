"""Command line entry point.

Usage example:
    stagehand --root ./site --router default --plugin health --plugin cors
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from core.config import get_config
from core.config.schemas.observability import LoggingConfig
from core.exceptions import StagehandError
from core.logs import configure_logging
from stagehand.version import __version__
from stagehand.application import Application

logger = logging.getLogger("stagehand")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stagehand",
        description="Boot a staged FastAPI server from a project root.",
    )
    parser.add_argument("--root", default=".", help="project root directory")
    parser.add_argument(
        "--router",
        default="default",
        help="router manifest name or module:attr import string",
    )
    parser.add_argument("--models-dir", default="models")
    parser.add_argument(
        "--plugin",
        action="append",
        default=[],
        metavar="NAME",
        help="plugin to apply (repeatable)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "error"],
        default=None,
        help="overrides logging.level from config",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = get_config()
        log_cfg = settings.logging
        if args.log_level:
            log_cfg = LoggingConfig(level=args.log_level, format=log_cfg.format)
        configure_logging(log_cfg)
        app = Application(
            {
                "root": Path(args.root).resolve(),
                "router": args.router,
                "models_dir": args.models_dir,
            },
            settings=settings,
        )
        for name in args.plugin:
            app.plugin(name)
        asyncio.run(app.serve())
    except StagehandError as e:
        logger.error("[%s] %s", e.error_type, e)
        print(f"stagehand: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
