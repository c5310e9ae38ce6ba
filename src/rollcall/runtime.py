"""Runtime composition for CLI entrypoints."""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import httpx

from rollcall.config.models import RollcallConfig
from rollcall.db.engine import Database
from rollcall.dead_letter import DeadLetterLog
from rollcall.delivery import (
    Delivery,
    DocumentGenerator,
    EmailDelivery,
    LocalPrinter,
    WebhookNotifier,
)
from rollcall.events.store import EventStore
from rollcall.health import HealthReporter
from rollcall.resilience import Resilience
from rollcall.scheduling import EventProcessor, Scheduler, SchedulingService
from rollcall.upstream import AttendeeFetcher, EventFilters, UpstreamClient, UpstreamSync

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Runtime:
    """Materialized runtime wiring."""

    config: RollcallConfig
    database: Database
    store: EventStore
    resilience: Resilience
    client: UpstreamClient
    dead_letters: DeadLetterLog
    sync: UpstreamSync
    fetcher: AttendeeFetcher
    scheduler: Scheduler
    processor: EventProcessor
    service: SchedulingService
    notifier: WebhookNotifier | None = None
    health: HealthReporter | None = None

    async def aclose(self) -> None:
        await self.client.aclose()
        if self.notifier is not None:
            await self.notifier.aclose()
        await self.database.disconnect()


def build_delivery(config: RollcallConfig) -> Delivery | None:
    """Delivery for the configured mode; None means generate only.

    Commands that deliver call ``config.validate_for_service()`` first, so a
    missing e-mail recipient only reaches here for read-only commands.
    """
    if config.delivery.mode == "local":
        return LocalPrinter(printer_name=config.delivery.printer_name)
    if config.delivery.mode == "email":
        if not config.email.recipient:
            logger.warning("email_delivery_unconfigured")
            return None
        return EmailDelivery.from_config(config.email)
    return None


async def build_runtime(
    config: RollcallConfig,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> Runtime:
    """Connect the database and wire every component from config."""
    database = Database(database_path=config.database_path)
    await database.connect()
    await database.create_all()

    store = EventStore(database)
    resilience = Resilience.from_config(config)
    client = UpstreamClient.from_config(config, resilience, transport=transport)
    dead_letters = DeadLetterLog(
        config.dead_letter.path, max_entries=config.dead_letter.max_entries
    )
    notifier = None
    if config.webhook.enabled and config.webhook.url:
        notifier = WebhookNotifier(config.webhook.url, resilience, transport=transport)

    lead = timedelta(minutes=config.scheduler.lead_minutes)
    scheduler = Scheduler(store, lead=lead, clock=clock)
    fetcher = AttendeeFetcher.from_config(client, config.api, config.cache)
    processor = EventProcessor(
        store=store,
        client=client,
        fetcher=fetcher,
        documents=DocumentGenerator(
            config.delivery.output_dir, config.delivery.output_filename
        ),
        resilience=resilience,
        dead_letters=dead_letters,
        delivery=build_delivery(config),
        notifier=notifier,
        scheduler=scheduler,
        lead=lead,
        late_grace=timedelta(minutes=config.scheduler.late_grace_minutes),
        layout=config.delivery.layout,
        clock=clock,
    )
    scheduler.on_fire(processor.process)

    sync = UpstreamSync(
        client, store, EventFilters.from_config(config.filters), clock=clock
    )
    health = None
    if config.health.enabled:
        health = HealthReporter(
            config.health.path, store, resilience, scheduler, clock=clock
        )
    service = SchedulingService(
        sync,
        store,
        scheduler,
        processor,
        window=timedelta(hours=config.scheduler.fetch_window_hours),
        interval=config.scheduler.run_interval_hours * 3600,
        clock=clock,
        health=health,
    )
    return Runtime(
        config=config,
        database=database,
        store=store,
        resilience=resilience,
        client=client,
        dead_letters=dead_letters,
        sync=sync,
        fetcher=fetcher,
        scheduler=scheduler,
        processor=processor,
        service=service,
        notifier=notifier,
        health=health,
    )


@asynccontextmanager
async def open_runtime(
    config: RollcallConfig,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> AsyncIterator[Runtime]:
    runtime = await build_runtime(config, transport=transport, clock=clock)
    try:
        yield runtime
    finally:
        await runtime.service.stop()
        await runtime.scheduler.shutdown()
        await runtime.aclose()
