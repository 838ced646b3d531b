"""Resilience helpers: retry with backoff and bounded external calls."""

from influenceflow.resilience.retry import (
    call_external,
    configure_error_notifier,
    notify_on_final_failure,
    resilient_api_call,
)

__all__ = [
    "call_external",
    "configure_error_notifier",
    "notify_on_final_failure",
    "resilient_api_call",
]
