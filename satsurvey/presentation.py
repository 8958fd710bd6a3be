"""Presentation collaborator interface.

The engine never formats markup; it hands snapshots, notifications and
field-level messages to a :class:`Presenter`.
"""

from __future__ import annotations

import logging
from typing import Protocol

from satsurvey.validation import FieldError
from satsurvey.view import ViewSnapshot

logger = logging.getLogger(__name__)

LEVEL_SUCCESS = "success"
LEVEL_INFO = "info"
LEVEL_WARNING = "warning"
LEVEL_ERROR = "error"


class Presenter(Protocol):
    def notify(self, message: str, level: str = LEVEL_INFO) -> None: ...

    def render(self, snapshot: ViewSnapshot) -> None: ...

    def show_field_errors(self, errors: list[FieldError]) -> None: ...

    def clear_field_errors(self) -> None: ...


class LoggingPresenter:
    """Default presenter: notifications go to the log, rendering is a no-op."""

    _LEVELS = {
        LEVEL_SUCCESS: logging.INFO,
        LEVEL_INFO: logging.INFO,
        LEVEL_WARNING: logging.WARNING,
        LEVEL_ERROR: logging.ERROR,
    }

    def notify(self, message: str, level: str = LEVEL_INFO) -> None:
        logger.log(self._LEVELS.get(level, logging.INFO), "[%s] %s", level, message)

    def render(self, snapshot: ViewSnapshot) -> None:
        logger.debug(
            "Render: %d of %d satellites shown", snapshot.count, snapshot.statistics.total
        )

    def show_field_errors(self, errors: list[FieldError]) -> None:
        for error in errors:
            logger.info("Field %s: %s", error.field, error.message)

    def clear_field_errors(self) -> None:
        pass
