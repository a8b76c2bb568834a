# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

# section_stream/logging_config.py
import logging
from typing import Optional

from section_stream.config import Settings, get_settings

PACKAGE_LOGGER = "section_stream"


def _to_level(name: str, default: int) -> int:
    level = logging.getLevelName((name or "").upper())
    return level if isinstance(level, int) else default


def configure_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Apply LOG_LEVEL to the package logger. Call once from the host application;
    handlers and format stay with the host's root configuration.
    """
    settings = settings or get_settings()
    lg = logging.getLogger(PACKAGE_LOGGER)
    lg.setLevel(_to_level(settings.LOG_LEVEL, logging.INFO))
    return lg
