"""Prometheus metrics for build tasks and live-reload."""

from prometheus_client import Counter, Histogram, start_http_server
import functools
import inspect
import time

# Public exports
__all__ = [
    "TASK_LATENCY",
    "TASK_SUCCESS",
    "TASK_FAILURE",
    "RELOAD_NOTIFICATIONS",
    "start_metrics_server",
    "track_task",
]
# Histogram tracking how long each task action takes to run.
TASK_LATENCY = Histogram(
    "estatico_task_latency_seconds",
    "Time spent executing build task actions",
    ["task_name"],
)

# Counters for successes and failures.
TASK_SUCCESS = Counter(
    "estatico_task_success_total",
    "Total number of build tasks completed successfully",
    ["task_name"],
)

TASK_FAILURE = Counter(
    "estatico_task_failure_total",
    "Total number of build tasks that raised an exception",
    ["task_name"],
)

RELOAD_NOTIFICATIONS = Counter(
    "estatico_reload_notifications_total",
    "Reload messages pushed to connected browser clients",
)


def start_metrics_server(port: int = 8000) -> None:
    """Start an HTTP server to expose Prometheus metrics."""
    start_http_server(port)


def track_task(func=None, *, name: str | None = None):
    """Decorator to record metrics for a task action.

    Works for plain functions and coroutine functions. Can be used without
    parentheses as ``@track_task`` or with a custom task name as
    ``@track_task(name="css")``.
    """

    def decorator(func):
        task_name = name or func.__name__

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.monotonic()
                try:
                    result = await func(*args, **kwargs)
                except Exception:
                    TASK_FAILURE.labels(task_name).inc()
                    raise
                else:
                    TASK_SUCCESS.labels(task_name).inc()
                    return result
                finally:
                    TASK_LATENCY.labels(task_name).observe(time.monotonic() - start_time)

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception:
                TASK_FAILURE.labels(task_name).inc()
                raise
            else:
                TASK_SUCCESS.labels(task_name).inc()
                return result
            finally:
                duration = time.monotonic() - start_time
                TASK_LATENCY.labels(task_name).observe(duration)

        return wrapper

    if func is None:
        return decorator

    return decorator(func)
