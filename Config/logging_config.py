"""
Structured Logging Configuration for the brokerage ledger

This module provides centralized logging configuration with:
- JSON formatting for containerised environments
- Colored console output for development
- Size-based log rotation (50MB max)
- Context injection (client_id, symbol, period_key)
- Custom log levels for ledger operations
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from Config.environment import env, get_environment


# Custom log levels for ledger operations
LEDGER_LOG_LEVELS = {
    'ALLOCATE': 21,
    'REVERSE': 22,
    'ACCRUAL': 23,
    'PERIOD_LOCK': 25,
}

for level_name, level_num in LEDGER_LOG_LEVELS.items():
    logging.addLevelName(level_num, level_name)


_RESERVED_RECORD_KEYS = frozenset([
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
    'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'context', 'taskName',
])


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON with consistent structure:
    {
        "timestamp": "2025-11-08T10:30:45.123Z",
        "level": "INFO",
        "logger": "brokerage_engine",
        "message": "Accrual persisted",
        "context": {"client_id": 7, "period_key": "2025-03"},
        "extra": {...},
        "exc_info": "..."
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if hasattr(record, 'context'):
            log_data['context'] = record.context

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS
        }
        if extra_fields:
            log_data['extra'] = extra_fields

        if record.exc_info:
            log_data['exc_info'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Colored console formatter for development environments.
    Uses ANSI color codes for better readability.
    """

    COLORS = {
        'DEBUG': '\x1b[38;21m',       # Grey
        'INFO': '\x1b[38;21m',        # Grey
        'WARNING': '\x1b[38;5;214m',  # Orange
        'ERROR': '\x1b[31;21m',       # Red
        'CRITICAL': '\x1b[31;1m',     # Bold Red
        'ALLOCATE': '\x1b[34;21m',    # Blue
        'REVERSE': '\x1b[35;21m',     # Magenta
        'ACCRUAL': '\x1b[32;21m',     # Green
        'PERIOD_LOCK': '\x1b[33;21m', # Yellow
    }
    RESET = '\x1b[0m'

    def __init__(self, include_context: bool = True):
        self.include_context = include_context
        fmt = '%(asctime)s - %(name)s - %(levelname)s - %(message)s (%(filename)s:%(lineno)d)'
        super().__init__(fmt, datefmt='%Y-%m-%d %H:%M:%S')

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"

        formatted = super().format(record)
        record.levelname = levelname

        if self.include_context and getattr(record, 'context', None):
            context_str = ' | '.join(f"{k}={v}" for k, v in record.context.items())
            formatted += f" [{context_str}]"

        return formatted


class LoggingConfig:
    """
    Central logging configuration manager.

    Provides factory methods for creating configured loggers with:
    - Environment-aware formatting (JSON in docker, colored for dev)
    - Size-based rotation (50MB default)
    - Consistent log levels and handlers
    """

    DEFAULT_MAX_BYTES = 50 * 1024 * 1024  # 50MB
    DEFAULT_BACKUP_COUNT = 5

    def __init__(
        self,
        log_dir: Optional[str] = None,
        max_bytes: int = DEFAULT_MAX_BYTES,
        backup_count: int = DEFAULT_BACKUP_COUNT,
        console_level: Optional[str] = None,
        file_level: str = 'DEBUG',
        use_json: Optional[bool] = None,
        log_to_file: Optional[bool] = None,
    ):
        """
        Initialize logging configuration.

        Args:
            log_dir: Directory for log files (default: environment log dir)
            max_bytes: Max size per log file before rotation (default: 50MB)
            backup_count: Number of backup files to keep (default: 5)
            console_level: Console log level (default: LOG_LEVEL or INFO)
            file_level: File log level (default: DEBUG)
            use_json: Force JSON formatting (default: auto-detect from environment)
            log_to_file: Attach rotating file handlers (default: LOG_TO_FILE, on)
        """
        self.log_dir = Path(log_dir) if log_dir else env.log_dir
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.console_level = (console_level or os.getenv('LOG_LEVEL', 'INFO')).upper()
        self.file_level = file_level

        if use_json is None:
            self.use_json = get_environment() in ('docker', 'production')
        else:
            self.use_json = use_json

        if log_to_file is None:
            self.log_to_file = os.getenv('LOG_TO_FILE', 'true').lower() in ('1', 'true', 'yes')
        else:
            self.log_to_file = log_to_file

        if self.log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    def get_console_formatter(self) -> logging.Formatter:
        if self.use_json:
            return JSONFormatter()
        return ColoredConsoleFormatter(include_context=True)

    def create_console_handler(self) -> logging.StreamHandler:
        handler = logging.StreamHandler()
        handler.setLevel(getattr(logging, self.console_level, logging.INFO))
        handler.setFormatter(self.get_console_formatter())
        return handler

    def create_file_handler(self, log_file: str) -> RotatingFileHandler:
        """Rotating file handler; file output is always JSON."""
        handler = RotatingFileHandler(
            self.log_dir / log_file,
            maxBytes=self.max_bytes,
            backupCount=self.backup_count,
            encoding='utf-8',
        )
        handler.setLevel(getattr(logging, self.file_level.upper()))
        handler.setFormatter(JSONFormatter())
        return handler

    def configure_logger(self, logger_name: str, log_file: Optional[str] = None) -> logging.Logger:
        """
        Configure a logger with console and file handlers.

        Args:
            logger_name: Name of the logger
            log_file: Log file name (default: none)

        Returns:
            Configured logger instance
        """
        logger = logging.getLogger(logger_name)
        logger.setLevel(logging.DEBUG)  # handlers filter

        if logger.hasHandlers():
            logger.handlers.clear()

        logger.addHandler(self.create_console_handler())
        if log_file and self.log_to_file:
            logger.addHandler(self.create_file_handler(log_file))

        logger.propagate = False
        return logger

    def setup_sqlalchemy_logging(self, level: str = 'WARNING') -> None:
        """Quiet SQLAlchemy engine logging."""
        sqlalchemy_logger = logging.getLogger('sqlalchemy.engine')
        sqlalchemy_logger.setLevel(getattr(logging, level.upper()))

        if sqlalchemy_logger.hasHandlers():
            sqlalchemy_logger.handlers.clear()

        handler = logging.StreamHandler()
        handler.setLevel(getattr(logging, level.upper()))
        handler.setFormatter(self.get_console_formatter())
        sqlalchemy_logger.addHandler(handler)


_default_config: Optional[LoggingConfig] = None


def get_logging_config() -> LoggingConfig:
    """Get or create default logging configuration."""
    global _default_config
    if _default_config is None:
        _default_config = LoggingConfig()
    return _default_config


def set_logging_config(config: LoggingConfig) -> None:
    """Set default logging configuration."""
    global _default_config
    _default_config = config
