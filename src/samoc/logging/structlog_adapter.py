# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Structured logging for samoc.

Module loggers stay on stdlib ``logging``; saga code logs through
``ctx.log``, a structlog logger bound to the offer being processed. Both end
up in the same handler, rendered either for a console or as JSON lines.

Configuration (``samoc.logging``)::

    samoc:
      logging:
        format: json            # or console
        level:
          root: INFO
          samoc.saga: DEBUG     # per-logger overrides
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from samoc.core.config import Config

# client libraries log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")

_SECRET_KEYS = frozenset({"token", "authorization", "password"})


@dataclass(frozen=True)
class LogSettings:
    root_level: str = "INFO"
    format: str = "console"
    levels: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Config) -> LogSettings:
        levels = {name: str(level).upper() for name, level in config.get_section("samoc.logging.level").items()}
        root = levels.pop("root", "INFO")
        return cls(root, str(config.get("samoc.logging.format", "console")).lower(), levels)


def _drop_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in _SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


class StructlogAdapter:
    """Installs structlog over stdlib logging from :class:`LogSettings`."""

    def __init__(self, settings: LogSettings | None = None) -> None:
        self._settings = settings or LogSettings()

    @property
    def format(self) -> str:
        return self._settings.format

    @property
    def root_level(self) -> str:
        return self._settings.root_level

    def configure(self, config: Config) -> None:
        self._settings = LogSettings.from_config(config)
        self.install()

    def install(self) -> None:
        renderer: structlog.types.Processor = (
            structlog.processors.JSONRenderer()
            if self._settings.format == "json"
            else structlog.dev.ConsoleRenderer()
        )
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                _drop_secrets,
                structlog.processors.format_exc_info,
                renderer,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        logging.basicConfig(
            format="%(message)s",
            stream=sys.stdout,
            level=_level(self._settings.root_level),
            force=True,
        )
        for name in QUIET_LOGGERS:
            if name not in self._settings.levels:
                self.set_level(name, "WARNING")
        for name, level in self._settings.levels.items():
            self.set_level(name, level)

    def set_level(self, name: str, level: str) -> None:
        logging.getLogger(name).setLevel(_level(level))


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str, **bindings: Any) -> Any:
    """Return a structlog logger for *name* with *bindings* attached."""
    logger = structlog.get_logger(name)
    return logger.bind(**bindings) if bindings else logger
