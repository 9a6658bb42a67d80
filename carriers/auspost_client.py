#Purpose: The AusPost (next-day parcel) booking adapter.
#Sole responsibility: create one shipment per HTTP call and normalise the outcome into BookingResult.
#Encapsulates AusPost-specific details:
#Account-Number header chosen by store + location
#per-store Basic authorization
#shipments[] envelope and shipment_id / tracking_id extraction

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from config.locations import AUSPOST_ACCOUNTS, AusPostAccount
from .base import PRODUCTION, SANDBOX, BookingRequest, BookingResult, CarrierError, resolve_mode, response_json

logger = logging.getLogger(__name__)

MALFORMED_SHIPMENTS = "Malformed shipments payload"

AUSPOST_BASE_URLS: Dict[str, str] = {
    PRODUCTION: "https://digitalapi.auspost.com.au/shipping/v1",
    SANDBOX: "https://digitalapi.auspost.com.au/test/shipping/v1",
}


class AusPostClient:
    """
    AusPost Adapter / Client

    Credentials (URL + per-store authorization) are fixed at construction.
    Each booking picks the account number for the order's store and location.
    """

    def __init__(
        self,
        mode: str = PRODUCTION,
        authorizations: Optional[Dict[str, str]] = None,
        accounts: Optional[Dict[str, AusPostAccount]] = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.mode = resolve_mode(mode)
        self.base_url = (base_url or AUSPOST_BASE_URLS[self.mode]).rstrip("/")
        self.accounts = accounts or AUSPOST_ACCOUNTS
        self.authorizations = {store: auth for store, auth in (authorizations or {}).items() if auth}
        self.timeout = timeout

        if not self.authorizations:
            raise CarrierError("AusPost authorization not set. Please set it in the .env file.")

        self._client = http_client

    @classmethod
    def from_settings(cls, settings, http_client: Optional[httpx.AsyncClient] = None) -> AusPostClient:
        return cls(
            mode=settings.carrier_mode,
            authorizations=settings.auspost_authorizations,
            base_url=settings.auspost_base_url or None,
            http_client=http_client,
        )

    @property
    def shipments_url(self) -> str:
        return f"{self.base_url}/shipments"

    def _authorization_for(self, store: str) -> Optional[str]:
        # BL falls back to the LVLY contract when it has none of its own
        return self.authorizations.get(store) or self.authorizations.get("LVLY")

    async def book_order(self, request: BookingRequest) -> BookingResult:
        store = request.store.value
        account = self.accounts.get(store)
        account_number = account.account_for(request.location) if account else None
        authorization = self._authorization_for(store)

        if not account_number or not authorization:
            error = f"No AusPost credentials for store {store} at {request.location}"
            logger.error(f"{error} (order {request.order_number})")
            return BookingResult.failed(error)

        client = self._client or httpx.AsyncClient()
        try:
            response = await client.post(
                self.shipments_url,
                json={"shipments": [request.body]},
                headers={
                    "Account-Number": account_number,
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    "Authorization": authorization,
                },
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"AusPost booking failed for order {request.order_number}: {e!r}")
            return BookingResult.failed(str(e) or e.__class__.__name__)
        finally:
            if self._client is None:
                await client.aclose()

        data = response_json(response)
        if response.status_code in (200, 201):
            shipments = data.get("shipments")
            if not isinstance(shipments, list) or not shipments or not isinstance(shipments[0], dict):
                logger.error(f"AusPost accepted order {request.order_number} but returned no shipment")
                return BookingResult.failed(MALFORMED_SHIPMENTS, status_code=response.status_code, response=data)
            shipment = shipments[0]
            return BookingResult(
                success=True,
                carrier_reference=shipment.get("shipment_id"),
                status_code=response.status_code,
                response=data,
            )

        error = _error_message(data) or f"Request failed with status code {response.status_code}"
        logger.error(f"AusPost rejected order {request.order_number}: {error}")
        return BookingResult.failed(error, status_code=response.status_code, response=data)


def _error_message(data: Dict) -> Optional[str]:
    if data.get("message"):
        return str(data["message"])
    errors = data.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, dict):
            return first.get("message") or first.get("name")
    return None
