"""Authentication module for Google API credential management."""

from influenceflow.auth.credentials import (
    GMAIL_SCOPES,
    authorize_gmail,
    build_gmail_service,
    load_gmail_credentials,
)

__all__ = [
    "GMAIL_SCOPES",
    "authorize_gmail",
    "build_gmail_service",
    "load_gmail_credentials",
]
