"""Structured logging configuration for the Task Management API."""

import logging
import logging.handlers
import sys

from ..config import Settings


class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support for console output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        """Format log record with colors for console output."""
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            # File handlers share the record and must see the plain name
            record.levelname = levelname


def _level(settings: Settings) -> int:
    return getattr(logging, settings.log_level.upper(), logging.INFO)


def setup_logging(settings: Settings) -> None:
    """Setup structured logging for the application.

    Args:
        settings: Application settings containing logging configuration
    """
    level = _level(settings)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear any existing handlers
    root_logger.handlers.clear()

    # Console handler with colors
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(console_handler)

    if settings.log_to_file:
        log_dir = settings.log_dir
        log_dir.mkdir(parents=True, exist_ok=True)

        # File handler for all logs
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / "app.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        root_logger.addHandler(file_handler)

        # Error file handler for errors and above
        error_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / "error.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        root_logger.addHandler(error_handler)

    # Configure specific loggers
    configure_module_loggers(settings)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured with level: {settings.log_level.upper()}")
    if settings.log_to_file:
        logger.info(f"Log files will be written to: {settings.log_dir.absolute()}")


def configure_module_loggers(settings: Settings) -> None:
    """Configure logging levels for specific modules.

    Args:
        settings: Application settings
    """
    level = _level(settings)

    for logger_name in ('task_api', 'task_api.main', 'task_api.routes', 'task_api.services', 'task_api.storage'):
        logging.getLogger(logger_name).setLevel(level)

    # Third-party library loggers (usually more verbose)
    third_party_loggers = {
        'uvicorn': logging.INFO,
        'uvicorn.access': logging.WARNING,
        'fastapi': logging.INFO,
        'sqlalchemy.engine': logging.WARNING,
        'aiosqlite': logging.WARNING,
        'httpx': logging.WARNING,
    }

    for logger_name, third_party_level in third_party_loggers.items():
        logging.getLogger(logger_name).setLevel(third_party_level)

    # Suppress overly verbose loggers in production
    if settings.environment == "production":
        for logger_name in ('uvicorn.access', 'httpx'):
            logging.getLogger(logger_name).setLevel(logging.ERROR)


def log_startup_info(settings: Settings) -> None:
    """Log application startup information.

    Args:
        settings: Application settings
    """
    logger = logging.getLogger("task_api.startup")

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} Starting")
    logger.info("=" * 60)
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level.upper()}")
    logger.info(f"Storage Backend: {settings.storage_backend}")
    if settings.database_target:
        logger.info(f"Storage Location: {settings.database_target}")
    logger.info(f"Task Routes Require Auth: {settings.require_auth_for_tasks}")
    if settings.rate_limit_enabled:
        logger.info(
            f"Rate Limits: {settings.rate_limit_max_requests} requests, "
            f"{settings.auth_rate_limit_max_requests} auth attempts "
            f"per {settings.rate_limit_window_seconds}s"
        )
    else:
        logger.info("Rate Limits: disabled")
    logger.info("=" * 60)


def log_shutdown_info(settings: Settings) -> None:
    """Log application shutdown information."""
    logger = logging.getLogger("task_api.shutdown")

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} Shutting Down")
    logger.info("=" * 60)


__all__ = [
    'ColoredFormatter',
    'setup_logging',
    'configure_module_loggers',
    'log_startup_info',
    'log_shutdown_info',
]
