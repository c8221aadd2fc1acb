"""Demo entrypoint wiring together the delivery components.

This module contains a small, end-to-end "smoke test" that:

- Loads configuration from environment.
- Instantiates the HTTP gateway, delivery client and observability recorder.
- Builds one observation and one survey response and submits them while the
  connection to the collector is still being established.

It is a manual integration harness, not production orchestration logic.
"""

from __future__ import annotations

import asyncio
import json
import os

from config import load_config
from delivery.client import ConnectionState, DeliveryClient, DeliveryError
from delivery.gateways.http import HttpGateway
from observability import DuckDBEventSink, MemoryEventSink, ObservabilityRecorder, setup_logger
from records.builders import ObservationBuilder, ResponseBuilder


async def _wait_for_drain(client: DeliveryClient, timeout_s: float) -> bool:
    """Wait until the client is connected with nothing pending, or timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s
    while loop.time() < deadline:
        if client.state is ConnectionState.CONNECTED and not client.pending:
            return True
        await asyncio.sleep(0.1)
    return False


async def run_demo() -> None:
    """Submit a demo observation and survey response to the configured collector."""
    cfg = load_config()
    logger = setup_logger(level=cfg.observability.log_level, format_type=cfg.observability.log_format)

    sink: DuckDBEventSink | MemoryEventSink
    if cfg.observability.db_path:
        sink = DuckDBEventSink(path=cfg.observability.db_path)
    else:
        sink = MemoryEventSink()
    recorder = ObservabilityRecorder(sink=sink, max_queue_size=cfg.observability.max_queue_size)

    def _on_state(state: ConnectionState) -> None:
        logger.info("Collector connection state changed", extra={"state": state.value})

    def _on_error(error: DeliveryError) -> None:
        logger.error("Delivery error", extra={"error": str(error)})

    client = DeliveryClient(
        HttpGateway(cfg.collector),
        recorder=recorder,
        state_listener=_on_state,
        error_observer=_on_error,
    )
    try:
        observer_id = os.getenv("DEMO_OBSERVER_ID", "org.example.demo")
        observation = (
            ObservationBuilder(observer_id, 1)
            .set_stream("heartbeat", 1)
            .set_data(json.dumps({"alive": True}))
            .with_id()
            .now()
        )
        await observation.write(client)

        response = (
            ResponseBuilder(os.getenv("DEMO_CAMPAIGN_URN", "urn:campaign:demo"), "2024-01-01 00:00:00")
            .with_survey_key()
            .now()
            .with_location_status("unavailable")
            .with_survey_id("demo")
            .with_launch(0, "UTC", "manual")
            .with_responses([{"prompt_id": "mood", "value": 3}])
        )
        await response.write(client)

        if await _wait_for_drain(client, timeout_s=cfg.collector.timeout_s * 2):
            logger.info("Demo records delivered", extra=client.stats())
        else:
            logger.warning("Demo records not delivered before timeout", extra=client.stats())
    finally:
        await client.close()
        await recorder.flush()
        logger.info(
            "Delivery event totals",
            extra={
                "events": sink.event_counts(),
                "discarded": sink.discarded_total(),
                "failures_by_source": sink.failures_by_source(),
            },
        )
        await recorder.aclose()


def main() -> None:
    """CLI entrypoint for running the demo with `python src/main.py`."""
    asyncio.run(run_demo())


if __name__ == "__main__":
    main()
