"""
Purpose: Pipeline orchestrator (the "glue").
What it does:
Runs one fulfilment run over a fixed stage order:

counters -> seed -> logistics -> batching -> assets -> labels -> content -> tally
-> reconciliation -> notifications -> audit

Every stage goes through run_stage(), so a failing stage becomes a FAILED
StageResult and the run carries on. Stages whose input is missing are SKIPPED
with a reason. Collaborators are injected; a collaborator left as None skips its stage.

Rule: Carrier calls are sequential with a fixed pacing delay. Counter values
that were written are never rolled back.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Callable, Optional

from carriers.base import BookingResult
from carriers.payloads import build_auspost_request, build_gopeople_request
from orders.batching.engine import assign_batches
from orders.models import OrderTrackingRecord, ReconciliationStatus
from orders.source import SourceUnavailable
from scheduling.cutoff import check_next_day_cutoff, format_pickup_datetime, resolve_pickup_slot
from scheduling.timezones import local_now

from . import stages
from .content import apply_content_statuses
from .context import PacingPolicy, RunContext, RunParameters, default_pacing_policy
from .report import build_report
from .stages import FLAG_OFF, NO_ORDERS, PAST_CUTOFF, StageResult, run_stage
from .state_machines.order_state import (
    mark_booked,
    mark_booking_failed,
    mark_reconciled,
    mark_skipped,
    skip_all_pending,
)
from .summary import batch_summary_rows

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

NOT_CONFIGURED = "not configured"
NO_BOOKED = "No booked orders"
ABORTED = "Logistics stage aborted"
BATCHING_FAILED = "Batch assignment failed"
NO_BATCH = "No batch number assigned"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineOrchestrator:
    """
    Coordinates one run from eligible-order selection to audit rows.

    Collaborators (duck-typed):
      source.fetch(selection) -> List[EligibleOrder]
      counter_store.get_counters(...) / increment_counters(...)
      gopeople.book_order(request) / auspost.book_order(request) -> BookingResult
      asset_store.pre_create_folders(delivery_date, batches) -> {location: {...}}
      labels.publish_gopeople(records, batches) / publish_auspost(...) -> [LabelOutcome]
      content.generate(records) -> ContentOutcome
      tally.calculate_and_submit(records, date, delivery_type, batches, submit) -> TallyOutcome
      status_writer.bulk_update(order_ids, status) -> int
      notifier.notify_hold_orders(records) -> {...}
      audit_sink.append_orders(records) / append_batches(rows) -> {...}
    """

    def __init__(
        self,
        *,
        source,
        counter_store,
        gopeople=None,
        auspost=None,
        asset_store=None,
        labels=None,
        content=None,
        tally=None,
        status_writer=None,
        notifier=None,
        audit_sink=None,
        pacing: Optional[PacingPolicy] = None,
        clock: Optional[Clock] = None,
    ):
        self.source = source
        self.counter_store = counter_store
        self.gopeople = gopeople
        self.auspost = auspost
        self.asset_store = asset_store
        self.labels = labels
        self.content = content
        self.tally = tally
        self.status_writer = status_writer
        self.notifier = notifier
        self.audit_sink = audit_sink
        self.pacing = pacing or default_pacing_policy()
        self.pacing.validate()
        self.clock = clock or _utcnow

    # --- Public API ---

    async def execute(self, params: RunParameters):
        started = time.monotonic()
        ctx = RunContext(params=params)
        logger.info(
            f"Run started: {params.delivery_date} {params.delivery_type.value} store={params.store} "
            f"flags={params.flags.as_string()} manual={params.manual}"
        )

        ctx.record(await run_stage(stages.COUNTERS, lambda: self._resolve_counters(ctx)))
        seed = ctx.record(await run_stage(stages.SEED, lambda: self._seed(ctx)))
        if not seed.ok:
            ctx.seed_failed = True
            ctx.seed_reason = ctx.seed_reason or seed.reason

        if not ctx.seed_failed and len(ctx.ledger) > 0:
            ctx.record(await run_stage(stages.LOGISTICS, lambda: self._logistics(ctx)))
            ctx.record(await run_stage(stages.BATCHING, lambda: self._batching(ctx)))
            ctx.record(await run_stage(stages.ASSETS, lambda: self._assets(ctx)))
            ctx.record(await run_stage(stages.LABELS, lambda: self._labels(ctx)))
            ctx.record(await run_stage(stages.CONTENT, lambda: self._content(ctx)))
            ctx.record(await run_stage(stages.TALLY, lambda: self._tally(ctx)))
            ctx.record(await run_stage(stages.RECONCILIATION, lambda: self._reconciliation(ctx)))
            ctx.record(await run_stage(stages.NOTIFICATIONS, lambda: self._notifications(ctx)))
            ctx.record(await run_stage(stages.AUDIT, lambda: self._audit(ctx)))

        execution_ms = int((time.monotonic() - started) * 1000)
        report = build_report(ctx, execution_ms)
        logger.info(f"Run finished in {execution_ms} ms: {report.get('message')}")
        return report

    # --- Stage 0: counters ---

    async def _resolve_counters(self, ctx: RunContext) -> StageResult:
        params = ctx.params
        ctx.prior_counters = await self.counter_store.get_counters(
            params.effective_locations, params.delivery_date, params.delivery_type
        )
        unavailable = [location for location, value in ctx.prior_counters.items() if value is None]
        if unavailable and len(unavailable) == len(ctx.prior_counters):
            return StageResult.failed(stages.COUNTERS, "Batch counters unavailable", counters=ctx.prior_counters)
        return StageResult.succeeded(stages.COUNTERS, counters=ctx.prior_counters, unavailable=unavailable)

    # --- Stage 1: seed ---

    async def _seed(self, ctx: RunContext) -> StageResult:
        try:
            orders = await self.source.fetch(ctx.params.selection())
        except SourceUnavailable as e:
            ctx.seed_failed = True
            ctx.seed_reason = f"Eligible-orders source unavailable: {e}"
            return StageResult.failed(stages.SEED, ctx.seed_reason)

        added = ctx.ledger.seed(orders, ctx.params.delivery_type)
        if added == 0:
            ctx.seed_reason = NO_ORDERS
            return StageResult.succeeded(stages.SEED, orders=0, reason=NO_ORDERS)
        return StageResult.succeeded(stages.SEED, orders=added, locations=ctx.ledger.locations())

    # --- Stage 2: schedule + book ---

    async def _logistics(self, ctx: RunContext) -> StageResult:
        params = ctx.params
        records = ctx.ledger.records()

        if not params.flags.logistics:
            skip_all_pending(records, FLAG_OFF)
            return StageResult.skipped(stages.LOGISTICS, FLAG_OFF, orders=len(records))

        same_day = params.delivery_type.is_same_day
        client = self.gopeople if same_day else self.auspost
        if client is None:
            carrier = "GoPeople" if same_day else "AusPost"
            reason = f"{carrier} client {NOT_CONFIGURED}"
            skip_all_pending(records, reason)
            return StageResult.failed(stages.LOGISTICS, reason, orders=len(records))

        delay = self.pacing.for_delivery_type(params.delivery_type)
        now_utc = self.clock()
        calls = 0
        try:
            for record in ctx.ledger.pending():
                if same_day:
                    request = self._gopeople_request(record, params, now_utc)
                else:
                    request = self._auspost_request(record, now_utc)
                if request is None:
                    mark_skipped(record, PAST_CUTOFF)
                    continue

                if calls and delay:
                    await asyncio.sleep(delay)
                calls += 1
                result: BookingResult = await client.book_order(request)
                if result.success:
                    mark_booked(
                        record,
                        carrier_reference=result.carrier_reference,
                        scheduled_pickup=request.scheduled_pickup,
                        response=result.response,
                    )
                else:
                    mark_booking_failed(
                        record, result.error or "Booking failed", scheduled_pickup=request.scheduled_pickup
                    )
        finally:
            # every record leaves this stage terminal
            skip_all_pending(records, ABORTED)

        stats = ctx.ledger.stats()
        return StageResult.succeeded(
            stages.LOGISTICS,
            attempted=calls,
            booked=stats.booked,
            failed=stats.booking_failed,
            skipped=stats.skipped,
        )

    def _gopeople_request(self, record: OrderTrackingRecord, params: RunParameters, now_utc: datetime):
        if params.pickup_timeframe:
            return build_gopeople_request(record, params.pickup_timeframe)

        now_local = local_now(record.location, now_utc)
        if now_local is None:
            return None
        decision = resolve_pickup_slot(record.location, record.delivery_date, now_local)
        if not decision.has_slot:
            logger.info(f"Order {record.order_number} ({record.location}): no pickup slot, {decision.reason}")
            return None
        pickup = format_pickup_datetime(record.delivery_date, decision.pickup_time, record.location)
        return build_gopeople_request(record, pickup)

    def _auspost_request(self, record: OrderTrackingRecord, now_utc: datetime):
        now_local = local_now(record.location, now_utc)
        if now_local is None:
            return None
        check = check_next_day_cutoff(record.location, record.delivery_date, now_local)
        if not check.allowed:
            logger.info(f"Order {record.order_number} ({record.location}): {check.reason}")
            return None
        return build_auspost_request(record)

    # --- Stage 3: batch assignment ---

    async def _batching(self, ctx: RunContext) -> StageResult:
        params = ctx.params
        assignment = await assign_batches(
            ctx.ledger,
            store=self.counter_store,
            delivery_date=params.delivery_date,
            delivery_type=params.delivery_type,
            prior_counters=ctx.prior_counters,
        )
        ctx.final_counters = assignment.final_counters
        return StageResult.succeeded(
            stages.BATCHING,
            success_counts=assignment.success_counts,
            final_counters=assignment.final_counters,
            records_stamped=assignment.records_stamped,
        )

    def _booked_batches(self, ctx: RunContext):
        return {location: ctx.final_counters.get(location) for location in ctx.ledger.booked_by_location()}

    def _batching_failed(self, ctx: RunContext) -> bool:
        result = ctx.result_for(stages.BATCHING)
        return result is not None and not result.ok

    # --- Stage 4: asset pre-creation ---

    async def _assets(self, ctx: RunContext) -> StageResult:
        if self.asset_store is None:
            return StageResult.skipped(stages.ASSETS, f"Asset store {NOT_CONFIGURED}")
        if self._batching_failed(ctx):
            return StageResult.skipped(stages.ASSETS, BATCHING_FAILED)
        batches = self._booked_batches(ctx)
        if not batches:
            return StageResult.skipped(stages.ASSETS, NO_BOOKED)

        # a location without a batch is skipped, not failed
        unbatched = sorted(location for location, batch in batches.items() if batch is None)
        for location in unbatched:
            logger.warning(f"Asset folders skipped for {location}: {NO_BATCH}")
        batched = {location: batch for location, batch in batches.items() if batch is not None}

        results = {location: {"success": False, "skipped": True, "error": NO_BATCH} for location in unbatched}
        if batched:
            results.update(
                await self.asset_store.pre_create_folders(ctx.params.delivery_date.isoformat(), batched)
            )
        ctx.outputs[stages.ASSETS] = results
        failed = [
            location for location, result in results.items()
            if not result.get("success") and not result.get("skipped")
        ]
        if failed:
            return StageResult.failed(
                stages.ASSETS, f"{len(failed)} of {len(results)} locations failed", locations=results
            )
        return StageResult.succeeded(stages.ASSETS, locations=results)

    # --- Stage 4b: labels ---

    async def _labels(self, ctx: RunContext) -> StageResult:
        if not ctx.params.flags.labels:
            return StageResult.skipped(stages.LABELS, FLAG_OFF)
        if self.labels is None:
            return StageResult.skipped(stages.LABELS, f"Label publisher {NOT_CONFIGURED}")
        if self._batching_failed(ctx):
            return StageResult.skipped(stages.LABELS, BATCHING_FAILED)
        booked = ctx.ledger.booked()
        if not booked:
            return StageResult.skipped(stages.LABELS, NO_BOOKED)

        batches = self._booked_batches(ctx)
        if ctx.params.delivery_type.is_same_day:
            outcomes = await self.labels.publish_gopeople(booked, batches)
        else:
            outcomes = await self.labels.publish_auspost(booked, batches)

        ctx.outputs[stages.LABELS] = [asdict(outcome) for outcome in outcomes]
        failed = [outcome.location for outcome in outcomes if not outcome.success]
        detail = {"locations": len(outcomes), "labels": sum(outcome.labels for outcome in outcomes)}
        if failed:
            return StageResult.failed(stages.LABELS, f"Labels failed for {', '.join(failed)}", **detail)
        return StageResult.succeeded(stages.LABELS, **detail)

    # --- Stage 5: content generation ---

    async def _content(self, ctx: RunContext) -> StageResult:
        records = ctx.ledger.records()
        if not ctx.params.flags.content:
            apply_content_statuses(records, None)
            return StageResult.skipped(stages.CONTENT, FLAG_OFF)
        if self.content is None:
            return StageResult.skipped(stages.CONTENT, f"Content generator {NOT_CONFIGURED}")
        if self._batching_failed(ctx):
            apply_content_statuses(records, None)
            return StageResult.skipped(stages.CONTENT, BATCHING_FAILED)
        if not ctx.ledger.booked():
            return StageResult.skipped(stages.CONTENT, NO_BOOKED)

        outcome = await self.content.generate(records)
        marked = apply_content_statuses(records, outcome)
        summary = outcome.summary()
        ctx.outputs[stages.CONTENT] = summary
        if not outcome.success:
            return StageResult.failed(stages.CONTENT, "; ".join(summary["errors"]), **summary)
        return StageResult.succeeded(stages.CONTENT, orders_marked=marked, **summary)

    # --- Stage 5b: product tally ---

    async def _tally(self, ctx: RunContext) -> StageResult:
        if self.tally is None:
            return StageResult.skipped(stages.TALLY, f"Product tally {NOT_CONFIGURED}")
        booked = ctx.ledger.booked()
        if not booked:
            return StageResult.skipped(stages.TALLY, NO_BOOKED)

        params = ctx.params
        outcome = await self.tally.calculate_and_submit(
            booked,
            params.delivery_date,
            params.delivery_type,
            self._booked_batches(ctx),
            submit=params.flags.tally_submission,
        )
        ctx.outputs[stages.TALLY] = outcome.to_dict()
        if not outcome.success:
            errors = ", ".join(f"{e['location']}: {e['error']}" for e in outcome.errors)
            return StageResult.failed(stages.TALLY, errors, submitted=params.flags.tally_submission)
        reason = None if params.flags.tally_submission else f"Submission {FLAG_OFF.lower()}"
        result = StageResult.succeeded(stages.TALLY, submitted=params.flags.tally_submission)
        result.reason = reason
        return result

    # --- Stage 6: reconciliation + notifications ---

    async def _reconciliation(self, ctx: RunContext) -> StageResult:
        if not ctx.params.flags.reconciliation:
            return StageResult.skipped(stages.RECONCILIATION, FLAG_OFF)
        if self.status_writer is None:
            return StageResult.skipped(stages.RECONCILIATION, f"Status writer {NOT_CONFIGURED}")

        partitions = (
            (ReconciliationStatus.PROCESSED, ctx.ledger.booked()),
            (ReconciliationStatus.HOLD, ctx.ledger.not_booked()),
        )
        detail = {}
        errors = []
        for status, records in partitions:
            if not records:
                detail[status.value] = {"orders": 0, "updated": 0}
                continue
            try:
                updated = await self.status_writer.bulk_update([record.id for record in records], status.value)
            except Exception as e:
                errors.append(f"{status.value}: {e}")
                detail[status.value] = {"orders": len(records), "error": str(e)}
                continue
            for record in records:
                mark_reconciled(record, status)
            detail[status.value] = {"orders": len(records), "updated": updated}

        ctx.outputs[stages.RECONCILIATION] = detail
        if errors:
            return StageResult.failed(stages.RECONCILIATION, "; ".join(errors), **detail)
        return StageResult.succeeded(stages.RECONCILIATION, **detail)

    async def _notifications(self, ctx: RunContext) -> StageResult:
        if not ctx.params.flags.reconciliation:
            return StageResult.skipped(stages.NOTIFICATIONS, FLAG_OFF)
        if self.notifier is None:
            return StageResult.skipped(stages.NOTIFICATIONS, f"Notifier {NOT_CONFIGURED}")
        held = [record for record in ctx.ledger if record.reconciliation_status is ReconciliationStatus.HOLD]
        if not held:
            if ctx.ledger.not_booked():
                return StageResult.skipped(stages.NOTIFICATIONS, "Hold status not written")
            return StageResult.skipped(stages.NOTIFICATIONS, "No orders on Hold")

        outcome = await self.notifier.notify_hold_orders(held)
        by_number = {entry["order_number"]: entry["success"] for entry in outcome.get("results", [])}
        for record in held:
            record.notification_sent = by_number.get(record.order_number, False)

        ctx.outputs[stages.NOTIFICATIONS] = outcome
        detail = {"sent": outcome.get("totalSent", 0), "failed": outcome.get("totalFailed", 0)}
        if detail["failed"]:
            return StageResult.failed(stages.NOTIFICATIONS, f"{detail['failed']} notifications failed", **detail)
        return StageResult.succeeded(stages.NOTIFICATIONS, **detail)

    # --- Stage 7: audit ---

    async def _audit(self, ctx: RunContext) -> StageResult:
        if not ctx.params.flags.audit_sheets:
            return StageResult.skipped(stages.AUDIT, FLAG_OFF)
        if self.audit_sink is None:
            return StageResult.skipped(stages.AUDIT, f"Audit sink {NOT_CONFIGURED}")

        records = ctx.ledger.records()
        batch_rows = batch_summary_rows(records)
        orders = await self.audit_sink.append_orders(records)
        batches = await self.audit_sink.append_batches(batch_rows)
        ctx.outputs[stages.AUDIT] = {"orders": orders, "batches": batches, "batchDetails": batch_rows}

        detail = {"orders_written": orders.get("rowsWritten", 0), "batches_written": batches.get("rowsWritten", 0)}
        if not (orders.get("success") and batches.get("success")):
            error = orders.get("error") or batches.get("error") or "append failed"
            return StageResult.failed(stages.AUDIT, error, **detail)
        return StageResult.succeeded(stages.AUDIT, **detail)
