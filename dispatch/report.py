"""
Purpose: The run report returned by PipelineOrchestrator.execute().
What it does:
- full_report(): counts, batch info, per-stage results, collaborator outputs, per-order rows
- manual_report(): reduced shape for explicit order-number runs
- failed_report(): seed failure, nothing else ran

Rule: Reads the RunContext only. No stage logic and no I/O.
"""

from __future__ import annotations

from typing import Any, Dict, List

from orders.models import ReconciliationStatus

from .context import RunContext
from .stages import StageStatus

MANUAL_COMPLETED = "Manual order processing completed"


def counts(ctx: RunContext) -> Dict[str, int]:
    stats = ctx.ledger.stats()
    reconciled = [record.reconciliation_status for record in ctx.ledger]
    return {
        "total": stats.total,
        "booked": stats.booked,
        "booking_failed": stats.booking_failed,
        "skipped": stats.skipped,
        "pending": stats.pending,
        "processed": reconciled.count(ReconciliationStatus.PROCESSED),
        "hold": reconciled.count(ReconciliationStatus.HOLD),
    }


def location_order_counts(ctx: RunContext) -> Dict[str, Dict[str, int]]:
    out: Dict[str, Dict[str, int]] = {}
    for record in ctx.ledger:
        entry = out.setdefault(record.location, {"total": 0, "booked": 0})
        entry["total"] += 1
        if record.is_booked:
            entry["booked"] += 1
    return out


def failed_stages(ctx: RunContext) -> List[str]:
    return [result.name for result in ctx.stage_results if result.status is StageStatus.FAILED]


def _message(ctx: RunContext) -> str:
    if ctx.seed_reason:
        return ctx.seed_reason
    failed = failed_stages(ctx)
    if failed:
        return f"Run completed with failed stages: {', '.join(failed)}"
    return "Run completed"


def full_report(ctx: RunContext, execution_ms: int) -> Dict[str, Any]:
    params = ctx.params
    report: Dict[str, Any] = {
        "success": not ctx.seed_failed and not ctx.seed_reason and not failed_stages(ctx),
        "message": _message(ctx),
        "counts": counts(ctx),
        "executionTime": execution_ms,
        "requestParams": params.to_dict(),
        "batchInfo": {
            "deliveryDate": params.delivery_date.isoformat(),
            "initialBatchNumbers": dict(ctx.prior_counters),
            "finalBatchNumbers": dict(ctx.final_counters),
            "locationOrderCounts": location_order_counts(ctx),
        },
        "executionDetails": {result.name: result.to_dict() for result in ctx.stage_results},
    }
    if not params.compact:
        report["results"] = dict(ctx.outputs)
        report["overall"] = [record.to_row() for record in ctx.ledger]
    return report


def manual_report(ctx: RunContext, execution_ms: int) -> Dict[str, Any]:
    orders = [
        {
            "order_number": record.order_number,
            "success": record.is_booked,
            "error": None if record.is_booked else record.failure_reason,
        }
        for record in ctx.ledger
    ]
    successful = sum(1 for order in orders if order["success"])
    return {
        "success": successful > 0,
        "message": ctx.seed_reason or MANUAL_COMPLETED,
        "summary": {
            "total": len(orders),
            "successful": successful,
            "unsuccessful": len(orders) - successful,
        },
        "orders": orders,
        "executionTime": execution_ms,
    }


def failed_report(ctx: RunContext, reason: str, execution_ms: int) -> Dict[str, Any]:
    return {
        "success": False,
        "message": "Order processing failed",
        "error": reason,
        "counts": counts(ctx),
        "executionTime": execution_ms,
        "requestParams": ctx.params.to_dict(),
        "executionDetails": {result.name: result.to_dict() for result in ctx.stage_results},
    }


def build_report(ctx: RunContext, execution_ms: int) -> Dict[str, Any]:
    if ctx.seed_failed:
        return failed_report(ctx, ctx.seed_reason or "Eligible-orders source unavailable", execution_ms)
    if ctx.params.manual:
        return manual_report(ctx, execution_ms)
    return full_report(ctx, execution_ms)
