"""Logfire tracing for circulation tool handlers."""

import functools
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import logfire

from .config import CirculationConfig

logger = logging.getLogger(__name__)


class _TracingState:
    enabled: bool = False


def configure_observability(config: CirculationConfig) -> bool:
    """
    Configure Logfire from service settings.

    Spans are only recorded once this has run with
    ``observability_enabled``; data leaves the process only if a Logfire
    token is present in the environment.

    Returns:
        Whether tracing is now enabled
    """
    if not config.observability_enabled:
        logger.debug("Observability disabled via configuration")
        _TracingState.enabled = False
        return False

    logfire.configure(
        send_to_logfire="if-token-present",
        service_name=config.server_name,
        service_version=config.server_version,
        environment=config.environment,
        console=False,
    )
    _TracingState.enabled = True
    logger.info("Logfire tracing enabled (environment=%s)", config.environment)
    return True


def tracing_enabled() -> bool:
    return _TracingState.enabled


def trace_operation(operation: str):
    """Wrap an async tool handler in a ``circulation.<operation>`` span."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            if not _TracingState.enabled:
                return await func(*args, **kwargs)

            with logfire.span(f"circulation.{operation}", operation=operation) as span:
                start_time = datetime.now()
                if args and isinstance(args[0], dict):
                    _add_attributes(span, "input", args[0])

                result = await func(*args, **kwargs)

                is_error = bool(isinstance(result, dict) and result.get("isError"))
                span.set_attribute("operation.success", not is_error)
                if is_error:
                    span.set_attribute("operation.error", result.get("data", {}).get("error", ""))
                span.set_attribute(
                    "operation.duration_ms", (datetime.now() - start_time).total_seconds() * 1000
                )
                return result

        return wrapper

    return decorator


def _add_attributes(span, prefix: str, data: dict[str, Any]) -> None:
    for key, value in data.items():
        if isinstance(value, str | int | float | bool):
            span.set_attribute(f"{prefix}.{key}", value)
