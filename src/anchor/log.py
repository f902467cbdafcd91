# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging

import structlog

__all__ = 'configure_logging',


def configure_logging(*, json_output: bool = True, level: str | int = 'info') -> None:
    """Configure structlog to render the log events as JSON (or for the console if json_output is False)"""
    if isinstance(level, str):
        try:
            level = logging.getLevelNamesMapping()[level.upper()]
        except KeyError:
            raise ValueError(f'Unknown log level: {level!r}') from None

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    processors.append(structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
