"""Observability: Prometheus metrics, request ids, and Sentry."""
