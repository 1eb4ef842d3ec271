from __future__ import annotations

"""Logging setup shared by the client, exporter and CLI.

Environment variables:
- SQUIDSTAT_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default INFO)
"""

import logging
import os
from typing import Optional, Dict


_CONFIGURED = False


def configure(level: Optional[str] = None) -> None:
    """Install the root handler once; an explicit level wins over the env."""
    global _CONFIGURED
    name = (level or os.getenv("SQUIDSTAT_LOG_LEVEL", "INFO")).upper()
    lvl = getattr(logging, name, None)
    if not isinstance(lvl, int):
        lvl = logging.INFO
    if _CONFIGURED:
        logging.getLogger().setLevel(lvl)
        return
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _CONFIGURED = True


class _ContextAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):  # type: ignore[override]
        ctx = " ".join(f"{k}={v}" for k, v in self.extra.items())
        return f"[{ctx}] {msg}", kwargs


def get_logger(name: str, context: Optional[Dict[str, object]] = None) -> logging.Logger:
    if not _CONFIGURED:
        configure()
    logger = logging.getLogger(f"squidstat.{name}")
    if context:
        return _ContextAdapter(logger, dict(context))  # type: ignore[return-value]
    return logger
