"""Structured logging setup: quiet terminal, complete log file"""

import logging
import os
import sys
from pathlib import Path
import structlog

DEFAULT_LOG_FILE = "logs/hybrid_ai.log"

# Transport libraries log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "aiohttp", "asyncio")


def _level(name: str, fallback: int) -> int:
    return getattr(logging, name.upper(), fallback)


def setup_logging(
    mode: str = "production",
    terminal_level: str = "ERROR",
    file_level: str = "DEBUG",
    log_file: str = None
):
    """
    Configure stdlib handlers and structlog.

    Production renders JSON through the stdlib handlers, so the terminal only
    sees ERROR and above while the file keeps everything. Development prints
    coloured key/value lines straight to stderr.

    Args:
        mode: "production" or "development"
        terminal_level: Console handler level in production
        file_level: File handler level
        log_file: Log file path, HYBRID_AI_LOG_FILE or logs/hybrid_ai.log by default

    Returns:
        The configured root logger
    """
    development = mode == "development"
    log_file = log_file or os.getenv("HYBRID_AI_LOG_FILE", DEFAULT_LOG_FILE)
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    file_log_level = _level(file_level, logging.DEBUG)
    terminal_log_level = logging.DEBUG if development else _level(terminal_level, logging.ERROR)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(file_log_level)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)8s] %(name)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(terminal_log_level)
    console_handler.setFormatter(logging.Formatter('%(message)s'))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
    ]

    if development:
        structlog.configure(
            processors=shared_processors + [
                structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
                structlog.dev.ConsoleRenderer(colors=True)
            ],
            wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
            cache_logger_on_first_use=True,
        )
    else:
        structlog.configure(
            processors=shared_processors + [
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.make_filtering_bound_logger(file_log_level),
            cache_logger_on_first_use=True,
        )

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.ERROR)

    return root_logger


def setup_production_logging(log_file: str = None):
    """Production mode - quiet terminal, errors only"""
    return setup_logging(mode="production", log_file=log_file)


def setup_dev_logging(log_file: str = None):
    """Development mode - verbose terminal"""
    return setup_logging(mode="development", log_file=log_file)
