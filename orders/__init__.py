"""
Orders domain package.

Public API:
- Domain models: EligibleOrder, OrderTrackingRecord, Store, DeliveryType, LogisticsStatus, ReconciliationStatus
- Ledger: OrderLedger
- Source: OrderSelection, SqlEligibleOrdersSource

Should not contain business logic.
"""
from .models import (
    DeliveryType,
    EligibleOrder,
    GiftDetails,
    LogisticsStatus,
    OrderTrackingRecord,
    ReconciliationStatus,
    ShippingAddress,
    Store,
)
from .ledger import LedgerStats, OrderLedger
from .source import OrderSelection, SourceUnavailable, SqlEligibleOrdersSource

__all__ = ["DeliveryType",
           "EligibleOrder",
           "GiftDetails",
             "LogisticsStatus",
               "OrderTrackingRecord",
               "ReconciliationStatus",
               "ShippingAddress",
               "Store",
               "LedgerStats",
               "OrderLedger",
               "OrderSelection",
               "SourceUnavailable",
               "SqlEligibleOrdersSource"
               ]
