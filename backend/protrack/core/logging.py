"""Loguru setup shared by the API process and the maintenance scripts.

Every record carries the request id, the acting user and the platform the
request was made for, so a ledger warning can be traced back to the
submission that caused it.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from sys import stderr, stdout
from typing import Any

from loguru import logger

from protrack.core.config import settings

request_id_ctx_var: ContextVar[str] = ContextVar("request_id", default="-")
user_id_ctx_var: ContextVar[str] = ContextVar("user_id", default="-")
platform_ctx_var: ContextVar[str] = ContextVar("platform", default="-")

_NOISY_LOGGERS = ("aiomysql", "sqlalchemy.engine", "slowapi")


def _patch_record(record: dict[str, Any]) -> None:
    extra = record["extra"]
    extra.setdefault("request_id", request_id_ctx_var.get())
    extra.setdefault("user_id", user_id_ctx_var.get())
    extra.setdefault("platform", platform_ctx_var.get())


def setup_logging(level: str | None = None, *, script: bool = False) -> None:
    """Route application logs through Loguru.

    The API writes serialized JSON to stdout for the log shipper. Scripts
    (``script=True``) log human readable lines to stderr so that their own
    stdout output stays clean.
    """

    level = level or settings.LOG_LEVEL
    logging.basicConfig(level=logging.INFO)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if settings.DEBUG else logging.WARNING)

    logger.remove()
    logger.configure(patcher=_patch_record)
    if script:
        logger.add(stderr, level=level, backtrace=False, diagnose=False)
        return
    logger.add(
        stdout,
        level=level,
        enqueue=True,
        backtrace=False,
        diagnose=False,
        serialize=settings.LOG_JSON,
    )
    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            level=level,
            rotation="00:00",
            retention="14 days",
            enqueue=True,
            serialize=True,
        )
