"""structlog configuration shared by the CLI and the scheduler daemon."""

import logging
import sys

import structlog

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def parse_level(level: str) -> int:
    """Translate a level name ("info", "DEBUG", ...) into a logging level.

    Raises:
        ValueError: If the level name is unknown
    """
    try:
        return _LEVELS[level.strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level}") from None


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    caller: bool = False,
) -> None:
    """Configure structlog for the current process.

    Args:
        level: Minimum level name to emit
        json_output: Render one JSON object per line instead of console output
        caller: Attach module, function and line number to every event
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if caller:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                }
            )
        )

    if json_output:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(parse_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
