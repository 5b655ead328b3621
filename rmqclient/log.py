"""Pluggable structured logging used throughout the client."""

from __future__ import annotations

import abc
import logging
import os
from collections.abc import Mapping
from typing import Any, Optional, TextIO

LOG_KEY_CONSUMER_GROUP = "consumerGroup"
LOG_KEY_TOPIC = "topic"
LOG_KEY_MESSAGE_QUEUE = "MessageQueue"
LOG_KEY_UNDERLAY_ERROR = "underlayError"
LOG_KEY_BROKER = "broker"
LOG_KEY_VALUE_CHANGED_FROM = "changedFrom"
LOG_KEY_VALUE_CHANGED_TO = "changeTo"
LOG_KEY_PULL_REQUEST = "PullRequest"

LEVEL_ENV_VAR = "ROCKETMQ_LOG_LEVEL"

Fields = Optional[Mapping[str, Any]]

_LEVELS = {
    "debug": logging.DEBUG,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def _parse_level(level: str) -> int:
    return _LEVELS.get(level.lower(), logging.INFO)


def _render(msg: str, fields: Fields) -> str:
    if not fields:
        return msg
    extras = " ".join(
        f"{key}={value}" for key, value in sorted(fields.items(), key=lambda kv: str(kv[0]))
    )
    return f"{msg} {extras}" if msg else extras


class Logger(abc.ABC):
    """Interface every logger plugged into the client must provide."""

    @abc.abstractmethod
    def debug(self, msg: str, fields: Fields) -> None: ...

    @abc.abstractmethod
    def info(self, msg: str, fields: Fields) -> None: ...

    @abc.abstractmethod
    def warning(self, msg: str, fields: Fields) -> None: ...

    @abc.abstractmethod
    def error(self, msg: str, fields: Fields) -> None: ...

    @abc.abstractmethod
    def fatal(self, msg: str, fields: Fields) -> None: ...

    @abc.abstractmethod
    def level(self, level: str) -> None: ...

    @abc.abstractmethod
    def output_path(self, path: str) -> None: ...


class DefaultLogger(Logger):
    """Logger backed by the standard logging module, writing key=value fields."""

    def __init__(self, stream: Optional[TextIO] = None, level: str = "info") -> None:
        self._logger = logging.Logger("rmqclient")
        self._logger.propagate = False
        self._formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
        handler = logging.StreamHandler(stream)
        handler.setFormatter(self._formatter)
        self._logger.addHandler(handler)
        self.level(level)

    @property
    def threshold(self) -> int:
        """The current logging level as a standard logging number."""
        return self._logger.level

    def _log(self, severity: int, msg: str, fields: Fields) -> bool:
        if not msg and not fields:
            return False
        self._logger.log(severity, _render(msg, fields))
        return True

    def debug(self, msg: str, fields: Fields) -> None:
        self._log(logging.DEBUG, msg, fields)

    def info(self, msg: str, fields: Fields) -> None:
        self._log(logging.INFO, msg, fields)

    def warning(self, msg: str, fields: Fields) -> None:
        self._log(logging.WARNING, msg, fields)

    def error(self, msg: str, fields: Fields) -> None:
        self._log(logging.ERROR, msg, fields)

    def fatal(self, msg: str, fields: Fields) -> None:
        """Log at critical level and terminate with exit status 1."""
        if self._log(logging.CRITICAL, msg, fields):
            raise SystemExit(1)

    def level(self, level: str) -> None:
        self._logger.setLevel(_parse_level(level))

    def output_path(self, path: str) -> None:
        """Redirect output to a file opened for appending."""
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        handler.setFormatter(self._formatter)
        for old in list(self._logger.handlers):
            self._logger.removeHandler(old)
            if isinstance(old, logging.FileHandler):
                old.close()
        self._logger.addHandler(handler)


class _Active:
    """Holds the logger the module-level functions delegate to."""

    def __init__(self, logger: Logger) -> None:
        self.logger = logger


_active = _Active(DefaultLogger(level=os.environ.get(LEVEL_ENV_VAR, "")))


def set_logger(logger: Logger) -> None:
    """Replace the logger used by the whole client."""
    if not isinstance(logger, Logger):
        raise TypeError(f"expected a Logger, got {type(logger).__name__}")
    _active.logger = logger


def set_log_level(level: str) -> None:
    if not level:
        return
    _active.logger.level(level)


def set_output_path(path: str) -> None:
    if not path:
        return None
    return _active.logger.output_path(path)


def debug(msg: str, fields: Fields) -> None:
    _active.logger.debug(msg, fields)


def info(msg: str, fields: Fields) -> None:
    if not msg and not fields:
        return
    _active.logger.info(msg, fields)


def warning(msg: str, fields: Fields) -> None:
    if not msg and not fields:
        return
    _active.logger.warning(msg, fields)


def error(msg: str, fields: Fields) -> None:
    _active.logger.error(msg, fields)


def fatal(msg: str, fields: Fields) -> None:
    _active.logger.fatal(msg, fields)