"""Access to the services dict stored on the application state."""

from __future__ import annotations

from typing import Any

from fastapi import Request


def service(request: Request, name: str) -> Any:
    """Return the service registered under *name* by ``initialize_services``."""
    return request.app.state.services[name]
