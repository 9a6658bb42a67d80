import argparse
import asyncio
import json
import logging
import sys

from carriers import AusPostClient, CarrierError, DocumentClient, GoPeopleClient, LabelPublisher
from config import ConfigurationError, load_settings
from dispatch import PacingPolicy, PipelineOrchestrator, RunParameters
from dispatch.content import ContentGenerator, content_endpoints
from dispatch.tally import ProductTally
from integrations import DriveAssetStore, SheetsAuditSink, SmtpNotifier, SqlOrderStatusWriter
from orders.batching.counters import BatchCounterStore, FirestoreCounterBackend
from orders.source import SqlEligibleOrdersSource

logger = logging.getLogger("run_pipeline")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run one order fulfilment pass.")
    parser.add_argument("--date", dest="date_value", help="Delivery date YYYY-MM-DD (default: today in Melbourne)")
    parser.add_argument("--same-day", dest="is_same_day", default="1", help='"1" same-day, anything else next-day')
    parser.add_argument("--store", default="1", help='"1" LVLY, "2" BL, "3" both')
    parser.add_argument("--locations", help="Comma separated location names")
    parser.add_argument("--orders", dest="order_numbers", help="Comma separated order numbers (manual mode)")
    parser.add_argument("--flags", help="Six 0/1 stage flags (default 111111)")
    parser.add_argument("--pickup-timeframe", help="Fixed GoPeople pickup, skips slot resolution")
    parser.add_argument("--compact", action="store_true", help="Leave per-order rows out of the report")
    return parser.parse_args(argv)


def optional(name, factory):
    """Build a collaborator, or None when its settings are missing."""
    try:
        return factory()
    except (ConfigurationError, CarrierError, ValueError) as e:
        logger.warning(f"{name} disabled: {e}")
        return None


def build_orchestrator(settings):
    documents = DocumentClient.from_settings(settings)
    asset_store = optional("Drive asset store", lambda: DriveAssetStore.from_settings(settings))
    pacing = PacingPolicy(
        gopeople_sec=settings.gopeople_pacing_sec,
        auspost_sec=settings.auspost_pacing_sec,
    )

    return PipelineOrchestrator(
        source=SqlEligibleOrdersSource(settings.database_url),
        counter_store=BatchCounterStore(FirestoreCounterBackend(project=settings.firestore_project)),
        gopeople=optional("GoPeople client", lambda: GoPeopleClient.from_settings(settings)),
        auspost=optional("AusPost client", lambda: AusPostClient.from_settings(settings)),
        asset_store=asset_store,
        labels=LabelPublisher(documents, settings.gp_labels_url, settings.auspost_labels_url, asset_store),
        content=optional(
            "Content generator",
            lambda: ContentGenerator(documents, content_endpoints(settings.document_api_base_url)),
        ),
        tally=ProductTally(documents, settings.product_tally_url),
        status_writer=optional("Status writer", lambda: SqlOrderStatusWriter(settings.database_url)),
        notifier=optional("Notifier", lambda: SmtpNotifier.from_settings(settings, pacing.notification_sec)),
        audit_sink=optional("Audit sink", lambda: SheetsAuditSink.from_settings(settings)),
        pacing=pacing,
    )


async def main(argv=None):
    args = parse_args(argv)
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    params = RunParameters.parse(
        date_value=args.date_value,
        is_same_day=args.is_same_day,
        store=args.store,
        locations=args.locations,
        order_numbers=args.order_numbers,
        flags=args.flags,
        pickup_timeframe=args.pickup_timeframe,
        compact=args.compact,
    )
    orchestrator = build_orchestrator(settings)
    try:
        report = await orchestrator.execute(params)
    finally:
        await orchestrator.source.dispose()
        if orchestrator.status_writer is not None:
            await orchestrator.status_writer.dispose()

    print(json.dumps(report, indent=None if args.compact else 2, default=str))
    return 0 if report.get("success") else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
