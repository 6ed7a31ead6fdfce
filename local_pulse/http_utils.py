# http_utils.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from local_pulse.errors import UpstreamError

log = logging.getLogger(__name__)


async def get_with_retry(
    client: httpx.AsyncClient,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    *,
    timeout: float = 10.0,
    attempts: int = 2,
    headers: Optional[Dict[str, str]] = None,
) -> httpx.Response:
    """
    GET an upstream URL and return the 200 response.

    Transport errors and 5xx are retried up to `attempts` times.
    Any 4xx is raised immediately as UpstreamError(status_code).
    """
    last_err = UpstreamError(url)

    for attempt in range(1, max(1, attempts) + 1):
        try:
            r = await client.get(url, params=params, headers=headers, timeout=timeout)
        except httpx.HTTPError as e:
            # Do not log exception message; it can contain user-controlled data
            log.error("Exception during request to %s [attempt %s]", url, attempt)
            last_err = UpstreamError(url, None, type(e).__name__)
            continue

        if r.status_code == 200:
            return r

        # Do not log params (secrets, user input) or response body
        log.error("HTTP %s from %s [attempt %s]", r.status_code, url, attempt)
        last_err = UpstreamError(url, r.status_code)
        if r.status_code < 500:
            break

    raise last_err
