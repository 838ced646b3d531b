"""Gmail OAuth2 credential management.

The service never opens a browser: it only loads (and refreshes) a token
created beforehand with ``python -m influenceflow.auth.credentials``, which
runs the interactive consent flow once and writes ``token.json``.
"""

from __future__ import annotations

import argparse
from pathlib import Path

import google.auth.transport.requests
import structlog
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow  # type: ignore[import-untyped]
from googleapiclient.discovery import Resource, build

logger = structlog.get_logger()

# gmail.readonly lets the client read back the Message-ID Gmail stored.
GMAIL_SCOPES: list[str] = [
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.readonly",
]


def load_gmail_credentials(
    token_path: str | Path,
    scopes: list[str] | None = None,
) -> Credentials | None:
    """Load cached Gmail credentials, refreshing them if expired.

    Args:
        token_path: Path to the cached OAuth2 token file.
        scopes: OAuth2 scopes.  Defaults to ``GMAIL_SCOPES``.

    Returns:
        Valid credentials, or None when no usable token exists.
    """
    token_path = Path(token_path)
    if not token_path.exists():
        return None

    creds = Credentials.from_authorized_user_file(str(token_path), scopes or GMAIL_SCOPES)  # type: ignore[no-untyped-call]
    if creds.valid:
        return creds
    if creds.expired and creds.refresh_token:
        creds.refresh(google.auth.transport.requests.Request())
        token_path.write_text(creds.to_json())
        logger.info("gmail_token_refreshed", token_path=str(token_path))
        return creds

    logger.warning("gmail_token_unusable", token_path=str(token_path))
    return None


def authorize_gmail(
    credentials_path: str | Path,
    token_path: str | Path,
    scopes: list[str] | None = None,
) -> Credentials:
    """Run the interactive consent flow and persist the resulting token."""
    flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes or GMAIL_SCOPES)
    creds = flow.run_local_server(port=0)
    Path(token_path).write_text(creds.to_json())
    return creds


def build_gmail_service(credentials: Credentials) -> Resource:
    """Build a Gmail API v1 service client."""
    return build("gmail", "v1", credentials=credentials, cache_discovery=False)


def main(argv: list[str] | None = None) -> None:
    """Create ``token.json`` by running the Gmail consent flow."""
    parser = argparse.ArgumentParser(description="Authorize the agent's Gmail account")
    parser.add_argument("--credentials", default="credentials.json", help="OAuth client secrets")
    parser.add_argument("--token", default="token.json", help="Where to write the token")
    args = parser.parse_args(argv)
    authorize_gmail(args.credentials, args.token)
    print(f"Token written to {args.token}")


if __name__ == "__main__":
    main()
