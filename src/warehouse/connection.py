"""httpx client factory for the Databricks SQL Statement Execution API.

One client per request; the bearer token is attached as a default header
so it never has to be threaded through call sites.
"""
from __future__ import annotations

import httpx

from src.core.errors import ConfigurationError
from src.core.logging import get_logger

logger = get_logger(__name__)


def normalise_host(host: str) -> str:
    """Return *host* as a base URL with a scheme and no trailing slash."""
    host = host.strip().rstrip("/")
    if not host.startswith(("http://", "https://")):
        host = f"https://{host}"
    return host


def build_http_client(
    host: str,
    token: str,
    timeout_seconds: float = 30.0,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create an authenticated client rooted at the workspace host."""
    if not host or not token:
        raise ConfigurationError("Server missing Databricks credentials")

    base_url = normalise_host(host)
    logger.info("Statement API client created  host=%s", base_url)
    return httpx.Client(
        base_url=base_url,
        headers={
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        },
        timeout=timeout_seconds,
        transport=transport,
    )
