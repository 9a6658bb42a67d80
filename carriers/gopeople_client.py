#Purpose: The GoPeople (same-day courier) booking adapter.
#Sole responsibility: book one order per HTTP call and normalise the outcome into BookingResult.
#Encapsulates GoPeople-specific details:
#bearer token selected by mode
#/book/instant URL construction
#errorCode / message success semantics
#It should not contain cutoff rules or pacing; the orchestrator owns both.

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from .base import PRODUCTION, SANDBOX, BookingRequest, BookingResult, CarrierError, resolve_mode, response_json

logger = logging.getLogger(__name__)

GOPEOPLE_BASE_URLS: Dict[str, str] = {
    PRODUCTION: "https://api.gopeople.com.au",
    SANDBOX: "http://api-demo.gopeople.com.au",
}

BOOKING_PATH = "/book/instant"


class GoPeopleClient:
    """
    GoPeople Adapter / Client

    Sole responsibility:
    - Talk to GoPeople via HTTP
    - One booking per call, no retry
    - Return normalized BookingResult, never raise for carrier failures
    """

    def __init__(
        self,
        mode: str = PRODUCTION,
        tokens: Optional[Dict[str, str]] = None,
        base_url: Optional[str] = None,
        timeout: float = 5.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.mode = resolve_mode(mode)
        self.base_url = (base_url or GOPEOPLE_BASE_URLS[self.mode]).rstrip("/")
        self.token = (tokens or {}).get(self.mode)
        self.timeout = timeout  # seconds to wait for GoPeople before treating the call as failed

        if not self.token:
            raise CarrierError(f"GoPeople token for mode {self.mode!r} not set. Please set it in the .env file.")

        self._client = http_client

    @classmethod
    def from_settings(cls, settings, http_client: Optional[httpx.AsyncClient] = None) -> GoPeopleClient:
        return cls(
            mode=settings.carrier_mode,
            tokens={PRODUCTION: settings.gopeople_token, SANDBOX: settings.gopeople_sandbox_token},
            base_url=settings.gopeople_base_url or None,
            http_client=http_client,
        )

    @property
    def booking_url(self) -> str:
        return f"{self.base_url}{BOOKING_PATH}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"bearer {self.token}",
        }

    async def book_order(self, request: BookingRequest) -> BookingResult:
        """
        POST one job to /book/instant.

        Success needs HTTP 200/201 and errorCode == 0. Anything else is a
        failed BookingResult carrying "errorCode: message" or the transport error.
        """
        client = self._client or httpx.AsyncClient()
        try:
            response = await client.post(
                self.booking_url,
                json=request.body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"GoPeople booking failed for order {request.order_number}: {e!r}")
            return BookingResult.failed(str(e) or e.__class__.__name__)
        finally:
            if self._client is None:
                await client.aclose()

        data = response_json(response)
        error_code = data.get("errorCode")
        if response.status_code in (200, 201) and error_code == 0:
            result = data.get("result") or {}
            reference = result.get("number") or result.get("jobId") or result.get("ref")
            return BookingResult(
                success=True,
                carrier_reference=str(reference) if reference is not None else None,
                status_code=response.status_code,
                response=result if isinstance(result, dict) else {"result": result},
            )

        if error_code is not None or data.get("message"):
            error = f"{error_code}: {data.get('message')}"
        else:
            error = f"HTTP {response.status_code}: {response.text[:200]}"
        logger.error(f"GoPeople rejected order {request.order_number}: {error}")
        return BookingResult.failed(error, status_code=response.status_code, response=data)
