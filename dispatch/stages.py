#Purpose: Stage outcome types shared by the orchestrator and the reports.
#Every stage ends as exactly one StageResult; nothing escapes run_stage().

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from .state_machines.order_state import OrderStateException

logger = logging.getLogger(__name__)

# stage names, in run order
COUNTERS = "counters"
SEED = "seed"
LOGISTICS = "logistics"
BATCHING = "batching"
ASSETS = "assets"
LABELS = "labels"
CONTENT = "content"
TALLY = "tally"
RECONCILIATION = "reconciliation"
NOTIFICATIONS = "notifications"
AUDIT = "audit"

STAGE_ORDER = (
    COUNTERS, SEED, LOGISTICS, BATCHING, ASSETS, LABELS, CONTENT, TALLY, RECONCILIATION, NOTIFICATIONS, AUDIT,
)

# ledger and report reasons
FLAG_OFF = "Skipped due to stage flag"
NO_ORDERS = "No orders found to process"
PAST_CUTOFF = "Order past cutoff time"


class StageStatus(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass
class StageResult:
    name: str
    status: StageStatus
    reason: Optional[str] = None
    duration_ms: int = 0
    detail: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def succeeded(name: str, **detail) -> StageResult:
        return StageResult(name, StageStatus.SUCCEEDED, detail=detail)

    @staticmethod
    def failed(name: str, reason: str, **detail) -> StageResult:
        return StageResult(name, StageStatus.FAILED, reason=reason, detail=detail)

    @staticmethod
    def skipped(name: str, reason: str, **detail) -> StageResult:
        return StageResult(name, StageStatus.SKIPPED, reason=reason, detail=detail)

    @property
    def ok(self) -> bool:
        return self.status is StageStatus.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "reason": self.reason,
            "duration_ms": self.duration_ms,
            "detail": self.detail,
        }


async def run_stage(name: str, body: Callable[[], Awaitable[StageResult]]) -> StageResult:
    """
    Await one stage body, timing it. Any exception becomes a FAILED result.
    """
    started = time.monotonic()
    logger.info(f"Stage {name} started")
    try:
        result = await body()
    except OrderStateException as e:
        # illegal ledger transition is a bug; the run still reports
        logger.exception(f"Stage {name} hit an illegal order transition: {e}")
        result = StageResult.failed(name, f"Illegal order transition: {e}")
    except Exception as e:
        logger.exception(f"Stage {name} failed: {e}")
        result = StageResult.failed(name, f"{e.__class__.__name__}: {e}")
    result.duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(f"Stage {name} {result.status.value} in {result.duration_ms} ms"
                + (f" ({result.reason})" if result.reason else ""))
    return result
