"""
Purpose: HTTP client for the document, label and tally endpoints.
What it does:
- post_json(): POST a JSON payload, return the decoded JSON body
- get_bytes(): GET a binary body (label PDFs)
- bounded retry with linear backoff (delay * attempt) on 5xx, connection errors and timeouts

Rule: 4xx responses are never retried. Exhausted retries raise DocumentApiError
with "API call failed after N attempts: ...".
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import AsyncRetrying, RetryError, retry_if_exception, stop_after_attempt, wait_incrementing

logger = logging.getLogger(__name__)

# transport failures worth another attempt; protocol and proxy misconfiguration are not
TRANSIENT_TRANSPORT_ERRORS = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.ReadError,
    httpx.WriteError,
    httpx.RemoteProtocolError,
)


class DocumentApiError(Exception):
    def __init__(self, message: str, attempts: int = 1, status_code: Optional[int] = None):
        super().__init__(message)
        self.attempts = attempts
        self.status_code = status_code


def is_transient(error: BaseException) -> bool:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return isinstance(error, TRANSIENT_TRANSPORT_ERRORS)


def _describe(error: BaseException) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        return f"HTTP {response.status_code}: {response.text[:200]}"
    return str(error) or error.__class__.__name__


class DocumentClient:
    def __init__(
        self,
        timeout: float = 30.0,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        if retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self._client = http_client

    @classmethod
    def from_settings(cls, settings, http_client: Optional[httpx.AsyncClient] = None) -> DocumentClient:
        return cls(
            timeout=settings.document_timeout_sec,
            retry_attempts=settings.document_retry_attempts,
            retry_delay=settings.document_retry_delay_sec,
            http_client=http_client,
        )

    async def _request(self, client: httpx.AsyncClient, method: str, url: str, **kwargs) -> httpx.Response:
        attempt = 0
        last_error: Optional[BaseException] = None
        try:
            async for attempt_state in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
                retry=retry_if_exception(is_transient),
                reraise=False,
            ):
                with attempt_state:
                    attempt = attempt_state.retry_state.attempt_number
                    try:
                        response = await client.request(method, url, timeout=self.timeout, **kwargs)
                        response.raise_for_status()
                        return response
                    except httpx.HTTPError as e:
                        last_error = e
                        if is_transient(e) and attempt < self.retry_attempts:
                            logger.warning(f"{method} {url} attempt {attempt} failed: {_describe(e)}, retrying")
                        raise
        except RetryError as e:
            last_error = last_error or e.last_attempt.exception()
        except httpx.HTTPError as e:
            # non-transient: tenacity re-raises on the first attempt
            last_error = e

        status_code = None
        if isinstance(last_error, httpx.HTTPStatusError):
            status_code = last_error.response.status_code
        message = f"API call failed after {attempt} attempts: {_describe(last_error)}"
        logger.error(f"{method} {url}: {message}")
        raise DocumentApiError(message, attempts=attempt, status_code=status_code) from last_error

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        if not url:
            raise DocumentApiError("API call failed after 0 attempts: endpoint URL not configured", attempts=0)
        if self._client is not None:
            return await self._request(self._client, method, url, **kwargs)
        async with httpx.AsyncClient() as client:
            return await self._request(client, method, url, **kwargs)

    async def post_json(self, url: str, payload: Any) -> Dict[str, Any]:
        response = await self._send("POST", url, json=payload)
        try:
            data = response.json()
        except ValueError:
            return {"raw": response.text}
        return data if isinstance(data, dict) else {"data": data}

    async def get_bytes(self, url: str) -> bytes:
        response = await self._send("GET", url)
        return response.content
