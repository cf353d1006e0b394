"""
Shared async retry utility with exponential backoff.

Used by the HTTP data-source clients (Solana RPC, DexScreener) so retry and
backoff behaviour is identical everywhere.  Both helpers return ``None``
once retries are exhausted; callers treat that as a transient lookup
failure for the one item they were fetching.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Collection, Optional

import httpx

logger = logging.getLogger(__name__)


def _parse_retry_after(resp: httpx.Response, default: float) -> float:
    """Extract wait time from a ``Retry-After`` header, or use *default*.

    Only the integer-seconds form is handled; HTTP-date values fall back.
    """
    raw = resp.headers.get("retry-after")
    if raw is not None:
        try:
            return max(float(raw), 0.5)
        except (ValueError, TypeError):
            pass
    return default


async def _with_retry(
    send: Callable[[], Awaitable[httpx.Response]],
    handle: Callable[[httpx.Response], Any],
    *,
    max_retries: int,
    backoff_base: float,
    label: str,
) -> Optional[Any]:
    """Run *send* until a response is accepted or retries run out.

    429 and transport / 5xx errors are retried; 403 is final.  *handle*
    parses an accepted response (``None`` for an application-level error).
    """
    for attempt in range(max_retries):
        delay = backoff_base * (2 ** attempt)
        try:
            resp = await send()
            if resp.status_code == 429:
                wait = _parse_retry_after(resp, delay)
                logger.warning("%s rate-limited, retry in %.1fs", label, wait)
                await asyncio.sleep(wait)
                continue
            if resp.status_code == 403:
                logger.warning("%s 403 – endpoint refused the request", label)
                return None
            resp.raise_for_status()
            return handle(resp)
        except httpx.HTTPStatusError as exc:
            logger.warning("%s HTTP %s", label, exc.response.status_code)
        except httpx.RequestError as exc:
            # Timeouts land here too (httpx.TimeoutException is a RequestError)
            logger.warning("%s request failed: %s", label, exc)
        if attempt < max_retries - 1:
            await asyncio.sleep(delay)
    return None


async def async_http_get(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Optional[dict[str, Any]] = None,
    max_retries: int = 3,
    backoff_base: float = 1.0,
    label: str = "HTTP",
) -> Optional[Any]:
    """GET *url* with retry + exponential backoff on 429 / transient errors.

    Returns parsed JSON on success, ``None`` on exhausted retries.
    """
    return await _with_retry(
        lambda: client.get(url, params=params),
        lambda resp: resp.json(),
        max_retries=max_retries,
        backoff_base=backoff_base,
        label=label,
    )


async def async_http_post_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    json_payload: Any,
    max_retries: int = 3,
    backoff_base: float = 1.5,
    label: str = "RPC",
    quiet_error_codes: Collection[int] = (),
) -> Optional[Any]:
    """POST a JSON-RPC *json_payload* with retry + exponential backoff.

    Returns the ``result`` member on success, ``None`` on an RPC-level error
    or exhausted retries.  RPC errors whose code is in *quiet_error_codes*
    (expected conditions such as a skipped slot) are logged at DEBUG.
    """

    def _handle(resp: httpx.Response) -> Any:
        body = resp.json()
        if isinstance(body, dict) and "error" in body:
            error = body["error"] or {}
            code = error.get("code") if isinstance(error, dict) else None
            level = logging.DEBUG if code in quiet_error_codes else logging.WARNING
            logger.log(level, "%s error: %s", label, error)
            return None
        if isinstance(body, dict):
            return body.get("result", body)
        return body

    return await _with_retry(
        lambda: client.post(url, json=json_payload),
        _handle,
        max_retries=max_retries,
        backoff_base=backoff_base,
        label=label,
    )
