"""Utilities for creating standardized httpx AsyncClient instances."""

from typing import Any

import httpx

__all__ = ["create_smappee_http_client"]


def create_smappee_http_client(
    headers: dict[str, str] | None = None,
    timeout: httpx.Timeout | None = None,
) -> httpx.AsyncClient:
    """Create a standardized httpx AsyncClient with Smappee defaults.

    The client follows redirects and uses a 30 second timeout unless told
    otherwise. Timeouts are the only wall-clock limit a request ever has;
    the request state machine itself is bounded by attempts, not time.

    Args:
        headers: Optional headers to include with all requests.
        timeout: Request timeout as httpx.Timeout object.

    Returns:
        Configured httpx.AsyncClient instance.
    """
    kwargs: dict[str, Any] = {
        "follow_redirects": True,
    }

    if timeout is None:
        kwargs["timeout"] = httpx.Timeout(30.0)
    else:
        kwargs["timeout"] = timeout

    if headers is not None:
        kwargs["headers"] = headers

    return httpx.AsyncClient(**kwargs)
