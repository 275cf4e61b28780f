"""
Structured logging for the predictive optimization engine.

Configures structlog with JSON output in production and a console renderer
elsewhere, injects the current optimization cycle id into every event and
provides an execution-time decorator for sync and async callables.
"""

import asyncio
import logging
import logging.config
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional
from uuid import uuid4

import structlog
from structlog.types import FilteringBoundLogger

# Context variables for cycle tracking
cycle_id_context: ContextVar[Optional[str]] = ContextVar("cycle_id", default=None)
component_context: ContextVar[Optional[str]] = ContextVar("component", default=None)


class PerformanceLogger:
    """Specialized logger for performance metrics."""

    def __init__(self, logger: FilteringBoundLogger):
        self.logger = logger

    def log_execution_time(
        self,
        operation: str,
        duration_ms: float,
        success: bool = True,
        **kwargs: Any
    ) -> None:
        """Log operation execution time."""
        self.logger.info(
            "Operation performance",
            event_type="performance",
            operation=operation,
            duration_ms=duration_ms,
            success=success,
            **kwargs
        )

    def log_store_call(
        self,
        operation: str,
        key: str,
        duration_ms: float,
        **kwargs: Any
    ) -> None:
        """Log persistent store call performance."""
        self.logger.debug(
            "Store call performance",
            event_type="store_performance",
            operation=operation,
            key=key,
            duration_ms=duration_ms,
            **kwargs
        )


def add_context_processor(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add cycle context information to log events."""
    cycle_id = cycle_id_context.get()
    if cycle_id:
        event_dict["cycle_id"] = cycle_id

    component = component_context.get()
    if component:
        event_dict["component"] = component

    event_dict["timestamp"] = time.time()

    return event_dict


def setup_logging(
    log_level: str = "INFO",
    environment: str = "development",
    log_file: Optional[Path] = None
) -> None:
    """
    Set up structured logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Environment name (development, staging, production, testing)
        log_file: Optional log file path
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    if environment == "production":
        processors.extend([
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer()
        ])
    else:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=environment == "development")
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
                "class": "pythonjsonlogger.jsonlogger.JsonFormatter"
            },
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json" if environment == "production" else "standard",
                "stream": sys.stdout
            }
        },
        "root": {
            "level": log_level,
            "handlers": ["console"]
        }
    }

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logging_config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "json",
            "filename": str(log_file),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5
        }
        logging_config["root"]["handlers"].append("file")

    logging.config.dictConfig(logging_config)


def get_logger(name: Optional[str] = None) -> FilteringBoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (defaults to the package name)

    Returns:
        FilteringBoundLogger: Configured logger instance
    """
    return structlog.get_logger(name or "predictive_optimization")


def get_performance_logger(name: Optional[str] = None) -> PerformanceLogger:
    """Get a performance logger."""
    return PerformanceLogger(get_logger(name))


def generate_cycle_id() -> str:
    """Generate a unique optimization cycle ID."""
    return str(uuid4())


@contextmanager
def cycle_context(cycle_id: Optional[str] = None) -> Iterator[str]:
    """Bind a cycle id to every log event emitted inside the block."""
    cycle_id = cycle_id or generate_cycle_id()
    token = cycle_id_context.set(cycle_id)
    try:
        yield cycle_id
    finally:
        cycle_id_context.reset(token)


@contextmanager
def component_scope(component: str) -> Iterator[str]:
    """
    Tag log events emitted inside the block with ``component``.

    Tasks created inside the block copy the context, so a background loop
    started here keeps the tag for its whole life.
    """
    token = component_context.set(component)
    try:
        yield component
    finally:
        component_context.reset(token)


def log_execution_time(operation_name: Optional[str] = None):
    """
    Decorator to log function execution time.

    Works for both plain functions and coroutine functions.

    Args:
        operation_name: Optional operation name (defaults to function name)
    """
    def decorator(func: Callable) -> Callable:
        operation = operation_name or f"{func.__module__}.{func.__name__}"

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.time()
                logger = get_performance_logger(func.__module__)
                try:
                    result = await func(*args, **kwargs)
                    duration_ms = (time.time() - start_time) * 1000
                    logger.log_execution_time(operation, duration_ms, success=True)
                    return result
                except Exception as e:
                    duration_ms = (time.time() - start_time) * 1000
                    logger.log_execution_time(operation, duration_ms, success=False, error=str(e))
                    raise

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            logger = get_performance_logger(func.__module__)
            try:
                result = func(*args, **kwargs)
                duration_ms = (time.time() - start_time) * 1000
                logger.log_execution_time(operation, duration_ms, success=True)
                return result
            except Exception as e:
                duration_ms = (time.time() - start_time) * 1000
                logger.log_execution_time(operation, duration_ms, success=False, error=str(e))
                raise

        return wrapper
    return decorator


__all__ = [
    "setup_logging",
    "get_logger",
    "get_performance_logger",
    "generate_cycle_id",
    "cycle_context",
    "component_scope",
    "log_execution_time",
    "PerformanceLogger",
]
