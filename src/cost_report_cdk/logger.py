"""Logger helpers shared by the evaluator, the stack and the CLI."""

from functools import wraps
from time import perf_counter
from typing import Any, Callable, TypeVar

import structlog

from .exceptions import CostReportCdkError

F = TypeVar("F", bound=Callable[..., Any])


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger instance.

    Example:
        >>> from cost_report_cdk.logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("graph_evaluated", node_count=5)
    """
    return structlog.get_logger(name)


def log_function_call(logger: Any | None = None) -> Callable[[F], F]:
    """Decorator logging duration and outcome of a call.

    Failures raised as CostReportCdkError are expected (bad configuration,
    rejected templates) and are logged at warning level with their context
    flattened into the event. Anything else is logged as an error with the
    traceback. The exception is re-raised in both cases.

    Example:
        >>> @log_function_call()
        ... def evaluate(config: dict) -> dict:
        ...     return {"nodes": []}
    """

    def decorator(func: F) -> F:
        nonlocal logger
        if logger is None:
            logger = get_logger(func.__module__)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = perf_counter()
            try:
                result = func(*args, **kwargs)
            except CostReportCdkError as e:
                logger.warning(
                    "function_call_rejected",
                    function=func.__name__,
                    error_type=type(e).__name__,
                    error=e.message,
                    duration_ms=round((perf_counter() - start) * 1000, 2),
                    **{f"error_{key}": value for key, value in e.context.items()},
                )
                raise
            except Exception:
                logger.error(
                    "function_call_error",
                    function=func.__name__,
                    duration_ms=round((perf_counter() - start) * 1000, 2),
                    exc_info=True,
                )
                raise
            logger.debug(
                "function_call_success",
                function=func.__name__,
                duration_ms=round((perf_counter() - start) * 1000, 2),
            )
            return result

        return wrapper  # type: ignore

    return decorator


class LogContext:
    """Bind key-value pairs to every log event emitted inside the block.

    Values go into structlog's context variables, so loggers of other
    modules called from inside the block carry them too. They are removed
    again on exit.

    Example:
        >>> with LogContext(stack="finops-cur", node="bucket") as log:
        ...     log.debug("resource_node_materialized")
    """

    def __init__(self, logger: Any | None = None, **context: Any) -> None:
        self.logger = logger or get_logger(__name__)
        self.context = context
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> Any:
        self._tokens = structlog.contextvars.bind_contextvars(**self.context)
        return self.logger

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)


__all__ = ["get_logger", "log_function_call", "LogContext"]
