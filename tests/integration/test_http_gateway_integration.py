from __future__ import annotations

import asyncio

import pytest

from config import load_config
from delivery.client import ConnectionState, DeliveryClient
from delivery.gateways.http import HttpGateway
from records.builders import ObservationBuilder


def _has_collector() -> bool:
    # `load_config()` loads `.env` before reading env vars.
    try:
        load_config()
    except Exception:
        return False
    return True


async def _wait_for_state(client: DeliveryClient, state: ConnectionState, timeout_s: float) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s
    while loop.time() < deadline:
        if client.state is state:
            return True
        await asyncio.sleep(0.05)
    return False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_integration_observation_reaches_collector() -> None:
    """Submits one observation to a real collector.

    To run:
    - set PROBE_COLLECTOR_URL (and optionally the path/timeout variables)
    - run: pytest -m integration
    """
    if not _has_collector():
        pytest.skip("Missing PROBE_COLLECTOR_URL; skipping collector integration test.")

    cfg = load_config().collector
    client = DeliveryClient(HttpGateway(cfg))
    try:
        record = (
            ObservationBuilder("org.example.integration", 1)
            .set_stream("heartbeat", 1)
            .set_data('{"alive": true}')
            .with_id()
            .now()
            .finalize()
        )
        await client.submit(record)

        assert await _wait_for_state(client, ConnectionState.CONNECTED, timeout_s=cfg.timeout_s * 2)
        assert client.pending == ()
        assert client.stats()["delivered"] == 1
    finally:
        await client.close()
