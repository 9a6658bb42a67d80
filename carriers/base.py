#Purpose: Shared carrier adapter types.
#BookingRequest / BookingResult are the only shapes the orchestrator sees;
#carrier-specific JSON stays inside each client.
#Credential mode ("production" | "sandbox") is resolved once when a client is built.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from orders.models import Store

PRODUCTION = "production"
SANDBOX = "sandbox"
MODES = (PRODUCTION, SANDBOX)


class CarrierError(Exception):
    """Raised when a carrier client is misconfigured (bad mode, missing credential)."""
    pass


@dataclass(frozen=True)
class BookingRequest:
    order_number: str
    store: Store
    location: str
    body: Dict[str, Any]
    scheduled_pickup: Optional[str] = None


@dataclass(frozen=True)
class BookingResult:
    success: bool
    carrier_reference: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    response: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def failed(error: str, status_code: Optional[int] = None, response: Optional[Dict[str, Any]] = None) -> BookingResult:
        return BookingResult(success=False, error=error, status_code=status_code, response=response or {})


def resolve_mode(mode: str) -> str:
    mode = (mode or PRODUCTION).strip().lower()
    if mode not in MODES:
        raise CarrierError(f"Unknown carrier mode {mode!r}, expected one of {MODES}")
    return mode


def response_json(response: httpx.Response) -> Dict[str, Any]:
    """
    Body as a dict; non-JSON or non-object bodies come back as {"raw": text}.
    """
    try:
        data = response.json()
    except ValueError:
        return {"raw": response.text}
    return data if isinstance(data, dict) else {"raw": data}
