"""
Server settings.

Defaults live here; clients override them through ``initializationOptions``.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger("rubis")

# Matches config/routes.rb and files drawn from config/routes/
DEFAULT_ROUTE_FILES_PATTERN = r"(^|/)config/routes(?:/[^/]+)*\.rb$"

DEFAULT_RUNNER_TIMEOUT = 5.0

DEFAULT_INDEX_EXCLUDE = [".git", "node_modules", "tmp", "log", "vendor"]


@dataclass
class Settings:
    route_files_pattern: str = DEFAULT_ROUTE_FILES_PATTERN
    runner_command: Optional[List[str]] = None
    runner_timeout: float = DEFAULT_RUNNER_TIMEOUT
    index_exclude: List[str] = field(default_factory=lambda: list(DEFAULT_INDEX_EXCLUDE))
    log_level: str = "INFO"

    def is_route_file(self, path: Optional[str]) -> bool:
        if not path:
            return False
        return re.search(self.route_files_pattern, path.replace("\\", "/")) is not None

    @property
    def logging_level(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO

    @classmethod
    def from_initialization_options(cls, options: Optional[Dict[str, Any]]) -> "Settings":
        """
        Build settings from the client's initialization options.

        Unknown keys are ignored and invalid values keep their default.
        """
        settings = cls()
        if not isinstance(options, dict):
            return settings

        pattern = options.get("routeFilesPattern")
        if pattern is not None:
            try:
                re.compile(pattern)
                settings.route_files_pattern = pattern
            except (re.error, TypeError):
                logger.warning("Ignoring invalid routeFilesPattern: %r", pattern)

        command = options.get("runnerCommand")
        if command is not None:
            if isinstance(command, list) and command and all(
                isinstance(part, str) for part in command
            ):
                settings.runner_command = command
            else:
                logger.warning("Ignoring invalid runnerCommand: %r", command)

        timeout = options.get("runnerTimeout")
        if timeout is not None:
            if isinstance(timeout, (int, float)) and timeout > 0:
                settings.runner_timeout = float(timeout)
            else:
                logger.warning("Ignoring invalid runnerTimeout: %r", timeout)

        exclude = options.get("indexExclude")
        if exclude is not None:
            if isinstance(exclude, list) and all(isinstance(item, str) for item in exclude):
                settings.index_exclude = exclude
            else:
                logger.warning("Ignoring invalid indexExclude: %r", exclude)

        level = options.get("logLevel")
        if level is not None:
            if isinstance(level, str) and isinstance(
                logging.getLevelName(level.upper()), int
            ):
                settings.log_level = level.upper()
            else:
                logger.warning("Ignoring invalid logLevel: %r", level)

        return settings
