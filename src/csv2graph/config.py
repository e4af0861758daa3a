"""
Configuration
=============
This module serves as the central registry for user-editable settings.

Why is this file needed?
------------------------
1. Settings: the backend to load and the validation policy are read from
   QSettings (INI format, see ``app.application.create_app``) instead of
   being hardcoded in the controllers.
2. Robustness: invalid values are logged and replaced by their defaults, so
   a broken settings file never prevents the application from starting.

Exports:
    AppConfig: Resolved settings for one session.
    load_config: Reads AppConfig from QSettings.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, TypeVar

from PySide6.QtCore import QSettings

from csv2graph.model.request import MaxRangePolicy, SkipPolicy, ValidationPolicy

logger = logging.getLogger(__name__)

DEFAULT_BACKEND_PROTOCOL = "module"
DEFAULT_BACKEND_TARGET = "csv2graph.backends.scatter"
DEFAULT_LOG_LEVEL = "INFO"

E = TypeVar("E", bound=Enum)


@dataclass
class AppConfig:
    backend_protocol: str = DEFAULT_BACKEND_PROTOCOL
    backend_target: str = DEFAULT_BACKEND_TARGET
    policy: ValidationPolicy = field(default_factory=ValidationPolicy)
    log_level: int = logging.INFO
    log_file: Optional[str] = None


def _read_str(settings: QSettings, key: str, default: str) -> str:
    value = settings.value(key, default)
    text = str(value).strip() if value is not None else ""
    return text or default


def _read_enum(settings: QSettings, key: str, enum_cls: type[E], default: E) -> E:
    raw = _read_str(settings, key, default.value).lower()
    try:
        return enum_cls(raw)
    except ValueError:
        logger.warning(f"Invalid value '{raw}' for setting '{key}', using '{default.value}'.")
        return default


def _read_log_level(settings: QSettings) -> int:
    name = _read_str(settings, "logging/level", DEFAULT_LOG_LEVEL).upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        logger.warning(f"Unknown log level '{name}', using {DEFAULT_LOG_LEVEL}.")
        return logging.INFO
    return level


def load_config(settings: Optional[QSettings] = None) -> AppConfig:
    """Read the session configuration, falling back to defaults for bad values."""
    settings = settings if settings is not None else QSettings()

    policy = ValidationPolicy(
        max_range=_read_enum(settings, "validation/max_range", MaxRangePolicy, MaxRangePolicy.ABSENT),
        skip=_read_enum(settings, "validation/skip", SkipPolicy, SkipPolicy.CLAMP),
    )
    log_file = _read_str(settings, "logging/file", "")

    return AppConfig(
        backend_protocol=_read_str(settings, "backend/protocol", DEFAULT_BACKEND_PROTOCOL),
        backend_target=_read_str(settings, "backend/target", DEFAULT_BACKEND_TARGET),
        policy=policy,
        log_level=_read_log_level(settings),
        log_file=log_file or None,
    )
