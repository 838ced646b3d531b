"""Resilient external calls: tenacity retries plus a bounded-time async bridge.

Transport adapters decorate their blocking API calls with
``resilient_api_call`` (3 attempts, exponential backoff with jitter).  Async
services invoke those adapters through ``call_external``, which runs them in
a worker thread under a timeout and converts every failure into a retryable
``ExternalServiceError``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
)

from influenceflow.domain.errors import ExternalServiceError, InfluenceFlowError

logger = structlog.get_logger()

# Module-level notifier for error reporting (avoids circular import with AuditLogger)
_notifier: Any = None

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")


def configure_error_notifier(notifier: Any) -> None:
    """Set the module-level notifier for error reporting.

    Call this at application startup with the ``AuditLogger`` so that
    exhausted retries leave a row in the audit trail.

    Args:
        notifier: An object with a ``log_error(error_message=..., context=...)``
                  method, typically an ``AuditLogger`` instance.
    """
    global _notifier
    _notifier = notifier


def _api_name(retry_state: RetryCallState) -> str:
    return getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"


def notify_on_final_failure(retry_state: RetryCallState) -> Any:
    """Log and audit the final failure, then re-raise the last exception.

    Args:
        retry_state: Tenacity retry state with attempt info and exception.
    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    api_name = _api_name(retry_state)

    logger.error(
        "API call failed after all retries",
        api_name=api_name,
        attempts=retry_state.attempt_number,
        exception=str(exception),
    )

    if _notifier is not None:
        try:
            _notifier.log_error(
                error_message=f"{api_name} failed after {retry_state.attempt_number} attempts: "
                f"{exception}",
                context="resilient_api_call",
            )
        except Exception:
            logger.exception("Failed to record retry exhaustion in audit trail")

    # Surface the original exception to the caller.
    return retry_state.outcome.result() if retry_state.outcome else None


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt.

    Args:
        retry_state: Tenacity retry state with attempt info.
    """
    logger.warning(
        "Retrying API call",
        api_name=_api_name(retry_state),
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
    )


def resilient_api_call(api_name: str) -> Callable[[F], F]:
    """Create a retry decorator for an API call.

    Returns a tenacity retry decorator configured with:
    - 3 attempts maximum
    - Exponential backoff with jitter (1s initial, 30s max, 5s jitter)
    - Warning log before each retry
    - Audit trail entry on final failure
    - Original exception re-raised after exhaustion

    Args:
        api_name: Human-readable name for the API (used in logs and alerts).

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def decorator(func: F) -> F:
        # Store api_name on function for the callbacks
        func._api_name = api_name  # type: ignore[attr-defined]

        wrapped = retry(
            stop=stop_after_attempt(3),
            wait=wait_exponential_jitter(initial=1, max=30, jitter=5),
            before_sleep=_before_sleep_log,
            retry_error_callback=notify_on_final_failure,
            reraise=True,
        )(func)

        return wrapped  # type: ignore[return-value]

    return decorator


async def call_external(
    func: Callable[..., T],
    *args: Any,
    api_name: str,
    timeout_seconds: float,
    **kwargs: Any,
) -> T:
    """Run a blocking external call in a worker thread with a time bound.

    The call is never cancelled mid-flight: on timeout the caller stops
    waiting and treats the outcome as a retryable failure.

    Args:
        func: The blocking callable (usually a transport method).
        *args: Positional arguments for *func*.
        api_name: Name of the external service for logs and errors.
        timeout_seconds: Maximum time to wait for *func* to return.
        **kwargs: Keyword arguments for *func*.

    Returns:
        Whatever *func* returns.

    Raises:
        ExternalServiceError: If *func* raises or does not return in time.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args, **kwargs), timeout=timeout_seconds
        )
    except TimeoutError as exc:
        logger.error("external_call_timed_out", api_name=api_name, timeout=timeout_seconds)
        raise ExternalServiceError(api_name, f"timed out after {timeout_seconds}s") from exc
    except InfluenceFlowError:
        raise
    except Exception as exc:
        logger.error("external_call_failed", api_name=api_name, error=str(exc))
        raise ExternalServiceError(api_name, str(exc)) from exc
