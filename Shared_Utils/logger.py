"""
Structured Logger for the brokerage ledger

Provides:
- Context injection (client_id, symbol, period_key, component)
- Performance tracking decorators
- Custom ledger log levels (ALLOCATE, REVERSE, ACCRUAL, PERIOD_LOCK)
- Task-safe context management

Usage:
    logger = get_component_logger('fifo_engine')
    logger.info('Allocating sell')

    with log_context(client_id=7, symbol='INFY'):
        logger.allocate('Consumed 3 lots')

    @log_async_performance('brokerage_engine')
    async def run(period):
        ...
"""

import asyncio
import functools
import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Callable, Dict, Optional

from Config.logging_config import LoggingConfig, get_logging_config, LEDGER_LOG_LEVELS


_log_context: ContextVar[Dict[str, Any]] = ContextVar('log_context', default={})


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter with context injection and ledger log levels.

    Context is merged from the active log_context(), the adapter's default
    extra, and the per-call extra, in that order.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})
        self._component = extra.get('component') if extra else None

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        context = {}
        context.update(_log_context.get())

        if self.extra:
            context.update(self.extra)

        if 'extra' in kwargs:
            context.update(kwargs.pop('extra'))

        if context:
            kwargs['extra'] = {'context': context}

        return msg, kwargs

    # ========================================================================
    # Ledger Log Levels
    # ========================================================================

    def allocate(self, msg: str, *args, **kwargs) -> None:
        self.log(LEDGER_LOG_LEVELS['ALLOCATE'], msg, *args, **kwargs)

    def reverse(self, msg: str, *args, **kwargs) -> None:
        self.log(LEDGER_LOG_LEVELS['REVERSE'], msg, *args, **kwargs)

    def accrual(self, msg: str, *args, **kwargs) -> None:
        self.log(LEDGER_LOG_LEVELS['ACCRUAL'], msg, *args, **kwargs)

    def period_lock(self, msg: str, *args, **kwargs) -> None:
        self.log(LEDGER_LOG_LEVELS['PERIOD_LOCK'], msg, *args, **kwargs)


# ============================================================================
# Logger Factory
# ============================================================================

_loggers: Dict[str, StructuredLogger] = {}


def get_logger(
    name: str,
    context: Optional[Dict[str, Any]] = None,
    config: Optional[LoggingConfig] = None,
) -> StructuredLogger:
    """
    Get or create a structured logger.

    Args:
        name: Logger name (e.g., 'fifo_engine', 'trade_ledger')
        context: Optional default context (component, client_id, ...)
        config: Optional custom logging config (uses default if not provided)

    Returns:
        StructuredLogger instance
    """
    cache_key = name
    if context:
        cache_key += ":" + ",".join(f"{k}={context[k]}" for k in sorted(context))

    if cache_key not in _loggers:
        log_config = config or get_logging_config()
        base_logger = log_config.configure_logger(logger_name=name, log_file=f"{name}.log")
        _loggers[cache_key] = StructuredLogger(base_logger, extra=context)

    return _loggers[cache_key]


def get_component_logger(component: str, **extra_context) -> StructuredLogger:
    """
    Get a logger with component in context.

    Examples:
        >>> logger = get_component_logger('brokerage_engine')
        >>> logger.accrual('Period finalised')
    """
    context = {'component': component}
    context.update(extra_context)
    return get_logger(component, context=context)


# ============================================================================
# Context Management
# ============================================================================

def set_context(**context) -> None:
    current = _log_context.get().copy()
    current.update(context)
    _log_context.set(current)


def clear_context() -> None:
    _log_context.set({})


def get_context() -> Dict[str, Any]:
    return _log_context.get().copy()


@contextmanager
def log_context(**context):
    """
    Context manager for temporary logging context.

    Examples:
        >>> with log_context(client_id=7, period_key='2025-03'):
        ...     logger.info('Computing')  # includes client_id and period_key
    """
    token = _log_context.set({**_log_context.get(), **context})
    try:
        yield
    finally:
        _log_context.reset(token)


# ============================================================================
# Performance Tracking Decorators
# ============================================================================

def log_performance(logger_name: str, level: str = 'INFO') -> Callable:
    """
    Decorator to log function execution time.

    Failures are logged with their duration and re-raised.
    """
    def decorator(func: Callable) -> Callable:
        log_level = getattr(logging, level.upper(), logging.INFO)

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = get_logger(logger_name)
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception:
                elapsed = time.perf_counter() - start_time
                logger.error(
                    f"{func.__name__} failed",
                    exc_info=True,
                    extra={'duration_ms': round(elapsed * 1000, 2)}
                )
                raise
            elapsed = time.perf_counter() - start_time
            logger.log(log_level, f"{func.__name__} completed",
                       extra={'duration_ms': round(elapsed * 1000, 2)})
            return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            logger = get_logger(logger_name)
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception:
                elapsed = time.perf_counter() - start_time
                logger.error(
                    f"{func.__name__} failed",
                    exc_info=True,
                    extra={'duration_ms': round(elapsed * 1000, 2)}
                )
                raise
            elapsed = time.perf_counter() - start_time
            logger.log(log_level, f"{func.__name__} completed",
                       extra={'duration_ms': round(elapsed * 1000, 2)})
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def log_async_performance(logger_name: str, level: str = 'DEBUG') -> Callable:
    """Simplified decorator for async function performance logging."""
    return log_performance(logger_name, level=level)


def setup_structured_logging(
    log_dir: Optional[str] = None,
    console_level: str = 'INFO',
    use_json: Optional[bool] = None,
    log_to_file: Optional[bool] = None,
) -> LoggingConfig:
    """
    Initialize structured logging system.

    Loggers created before this call keep their handlers; call it first.
    """
    from Config.logging_config import set_logging_config

    config = LoggingConfig(
        log_dir=log_dir,
        console_level=console_level,
        use_json=use_json,
        log_to_file=log_to_file,
    )
    config.setup_sqlalchemy_logging()

    set_logging_config(config)
    _loggers.clear()
    return config


__all__ = [
    'StructuredLogger',
    'get_logger',
    'get_component_logger',
    'set_context',
    'clear_context',
    'get_context',
    'log_context',
    'log_performance',
    'log_async_performance',
    'setup_structured_logging',
]
