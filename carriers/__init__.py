from .base import PRODUCTION, SANDBOX, BookingRequest, BookingResult, CarrierError
from .gopeople_client import GoPeopleClient
from .auspost_client import AusPostClient
from .documents import DocumentApiError, DocumentClient
from .labels import LabelOutcome, LabelPublisher, group_auspost_labels, group_gopeople_labels
from .payloads import build_auspost_request, build_gopeople_request

__all__ = [
    "PRODUCTION",
    "SANDBOX",
    "BookingRequest",
    "BookingResult",
    "CarrierError",
    "GoPeopleClient",
    "AusPostClient",
    "DocumentApiError",
    "DocumentClient",
    "LabelOutcome",
    "LabelPublisher",
    "group_auspost_labels",
    "group_gopeople_labels",
    "build_auspost_request",
    "build_gopeople_request",
]
