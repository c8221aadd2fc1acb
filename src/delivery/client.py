"""Buffered, reconnecting delivery client.

The client owns three pieces of state, all guarded by one `asyncio.Lock`:

- the connection state (`DISCONNECTED` -> `CONNECTING` -> `CONNECTED`),
- the FIFO queue of records submitted while not connected,
- the connection epoch, which identifies the current connection attempt.

Delivery policy:

- Connected: `submit()` forwards straight to the gateway.
- Disconnected: the record is queued and one connection attempt is started.
  If the gateway cannot even start connecting, the whole queue is discarded
  and `ConnectInitiationFailed` is raised to the submitting caller.
- Connecting: the record is queued.
- On connect the queue is drained in submission order; per-record failures
  go to the error observer and do not stop the drain.

Priority is forwarded with each record and never used for ordering.

`gateway.send` is awaited with the lock held, both for direct forwards and
while draining. Submission order is therefore exactly delivery order, at the
cost of one slow send delaying every other `submit()` and callback until it
returns. Connecting never waits on the network under the lock: gateways
report the outcome later through the connection callbacks.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Any

from observability.logger import get_logger
from observability.recorder import ObservabilityRecorder
from records.errors import MissingPayload
from records.models import DEFAULT_UPLOAD_PRIORITY, ObservationRecord, Record, SurveyResponse

from .gateways.base import ConnectionGateway

logger = get_logger(__name__)

_STAGE = "delivery_client"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class DeliveryError(RuntimeError):
    """Base class for connection and delivery errors."""


class ConnectInitiationFailed(DeliveryError):
    """The gateway refused to start connecting; pending records were discarded."""

    def __init__(self, *, discarded: int) -> None:
        self.discarded = discarded
        super().__init__(f"Could not start connecting to the collector; discarded {discarded} pending record(s)")


class DeliveryFailed(DeliveryError):
    """The gateway failed to send one record."""

    def __init__(self, record: Record, cause: BaseException) -> None:
        self.record = record
        self.cause = cause
        super().__init__(f"Failed to deliver {record.type}: {cause}")


StateListener = Callable[[ConnectionState], None]
ErrorObserver = Callable[[DeliveryError], None]


class _ConnectionHandle:
    """Callbacks handed to the gateway for a single connection attempt.

    Callbacks from an attempt that has been superseded (by `close()` or a
    newer attempt) are ignored.
    """

    def __init__(self, client: DeliveryClient, epoch: int) -> None:
        self._client = client
        self._epoch = epoch

    async def on_connected(self) -> None:
        await self._client._handle_connected(self._epoch)

    async def on_disconnected(self) -> None:
        await self._client._handle_disconnected(self._epoch)


class DeliveryClient:
    """Delivers finalized records through a gateway, buffering while offline."""

    def __init__(
        self,
        gateway: ConnectionGateway,
        *,
        recorder: ObservabilityRecorder | None = None,
        state_listener: StateListener | None = None,
        error_observer: ErrorObserver | None = None,
    ) -> None:
        """Create a disconnected client.

        Args:
            gateway: Transport used to connect and send.
            recorder: Optional observability recorder for delivery events.
            state_listener: Called on transitions into CONNECTED / DISCONNECTED.
                Diagnostic only; it cannot affect delivery.
            error_observer: Receives errors that have no caller to raise to
                (drain failures) and discards.
        """
        self._gateway = gateway
        self._recorder = recorder
        self._state_listener = state_listener
        self._error_observer = error_observer

        self._lock = asyncio.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._pending: list[Record] = []
        self._epoch = 0
        self._closed = False

        self._delivered = 0
        self._discarded = 0
        self._delivery_failures = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def pending(self) -> tuple[Record, ...]:
        """Snapshot of records waiting for a connection, oldest first."""
        return tuple(self._pending)

    def stats(self) -> dict[str, int]:
        return {
            "delivered": self._delivered,
            "discarded": self._discarded,
            "delivery_failures": self._delivery_failures,
            "pending": len(self._pending),
        }

    async def submit(self, record: Record) -> Any:
        """Send a finalized record now, or queue it until the gateway connects.

        Returns the gateway's result when sent directly, None when queued.

        Raises:
        - `MissingPayload` if the record has no data (it is never queued)
        - `DeliveryFailed` if a direct send fails
        - `ConnectInitiationFailed` if connecting could not be started; every
          pending record, including this one, has been discarded
        """
        if not record.data:
            raise MissingPayload()

        async with self._lock:
            if self._state is ConnectionState.CONNECTED:
                return await self._forward(record)

            self._pending.append(record)
            if self._state is ConnectionState.DISCONNECTED:
                await self._start_connecting()
            return None

    async def write_observation(
        self,
        observer_id: str,
        observer_version: int,
        stream_id: str,
        stream_version: int,
        metadata: str | None,
        data: str,
        upload_priority: int = DEFAULT_UPLOAD_PRIORITY,
    ) -> Any:
        """Submit an observation from pre-built metadata and data strings."""
        record = ObservationRecord(
            observer_id=observer_id,
            observer_version=observer_version,
            stream_id=stream_id,
            stream_version=stream_version,
            upload_priority=upload_priority,
            metadata=metadata,
            data=data,
        )
        return await self.submit(record)

    async def write_response(
        self,
        campaign_urn: str,
        campaign_creation_timestamp: str,
        data: str,
        upload_priority: int = DEFAULT_UPLOAD_PRIORITY,
    ) -> Any:
        """Submit a survey response from a pre-built data string."""
        record = SurveyResponse(
            campaign_urn=campaign_urn,
            campaign_creation_timestamp=campaign_creation_timestamp,
            upload_priority=upload_priority,
            data=data,
        )
        return await self.submit(record)

    async def on_connected(self) -> None:
        """The current connection attempt succeeded."""
        await self._handle_connected(self._epoch)

    async def on_disconnected(self) -> None:
        """The current connection was lost."""
        await self._handle_disconnected(self._epoch)

    async def close(self) -> None:
        """Release the connection and go back to DISCONNECTED.

        Pending records are kept; a later `submit()` reconnects and drains them.
        """
        async with self._lock:
            previous = self._state
            self._closed = True
            self._epoch += 1
            self._set_state(ConnectionState.DISCONNECTED)
            if previous is not ConnectionState.DISCONNECTED:
                await self._gateway.disconnect()
            await self._record("closed", summary={"pending": len(self._pending)})

    async def _start_connecting(self) -> None:
        """Start one connection attempt. Caller holds the lock."""
        self._closed = False
        self._epoch += 1
        handle = _ConnectionHandle(self, self._epoch)
        self._set_state(ConnectionState.CONNECTING)

        cause: BaseException | None = None
        try:
            started = await self._gateway.try_connect(handle)
        except Exception as exc:  # noqa: BLE001 - reported as ConnectInitiationFailed below
            started = False
            cause = exc

        if started:
            logger.debug("Connecting to collector", extra={"pending": len(self._pending)})
            await self._record("connecting", summary={"pending": len(self._pending)})
            return

        # No point in buffering data if we can't connect.
        dropped = len(self._pending)
        self._pending.clear()
        self._discarded += dropped
        self._set_state(ConnectionState.DISCONNECTED)

        error = ConnectInitiationFailed(discarded=dropped)
        logger.warning("Connection could not be started; pending records discarded", extra={"discarded": dropped})
        await self._record("records_discarded", kind="error", summary={"discarded": dropped})
        self._notify_error(error)
        if cause is not None:
            raise error from cause
        raise error

    async def _handle_connected(self, epoch: int) -> None:
        async with self._lock:
            if self._closed or epoch != self._epoch:
                logger.debug("Ignoring connect callback from a stale connection attempt")
                return
            if self._state is ConnectionState.CONNECTED:
                return

            self._set_state(ConnectionState.CONNECTED)
            await self._record("connected", summary={"pending": len(self._pending)})

            # Write any records which came before we were connected.
            for record in self._pending:
                try:
                    await self._forward(record)
                except DeliveryFailed as error:
                    self._notify_error(error)
            self._pending.clear()

    async def _handle_disconnected(self, epoch: int) -> None:
        async with self._lock:
            if self._closed or epoch != self._epoch:
                logger.debug("Ignoring disconnect callback from a stale connection attempt")
                return
            if self._state is ConnectionState.DISCONNECTED:
                return

            self._set_state(ConnectionState.DISCONNECTED)
            logger.info("Collector connection lost", extra={"pending": len(self._pending)})
            await self._record("disconnected", summary={"pending": len(self._pending)})

    async def _forward(self, record: Record) -> Any:
        """Send one record. Caller holds the lock."""
        try:
            result = await self._gateway.send(record)
        except Exception as exc:  # noqa: BLE001 - wrapped into DeliveryFailed
            self._delivery_failures += 1
            logger.warning("Record delivery failed", extra={"record_type": record.type, "error": str(exc)})
            await self._record("delivery_failed", kind="error", record=record, summary={"error": str(exc)})
            raise DeliveryFailed(record, exc) from exc
        self._delivered += 1
        return result

    def _set_state(self, state: ConnectionState) -> None:
        previous = self._state
        self._state = state
        if state is previous or state is ConnectionState.CONNECTING:
            return
        if self._state_listener is None:
            return
        try:
            self._state_listener(state)
        except Exception:  # noqa: BLE001 - the listener is a diagnostic side channel
            logger.exception("Connection state listener failed")

    def _notify_error(self, error: DeliveryError) -> None:
        if self._error_observer is None:
            return
        try:
            self._error_observer(error)
        except Exception:  # noqa: BLE001 - observer failures must not affect delivery
            logger.exception("Delivery error observer failed")

    async def _record(
        self,
        event_type: str,
        *,
        kind: str = "event",
        record: Record | None = None,
        summary: dict[str, Any] | None = None,
    ) -> None:
        if self._recorder is None:
            return
        await self._recorder.record_event(
            event_type,
            stage=_STAGE,
            kind=kind,  # type: ignore[arg-type]
            record=record,
            summary=summary,
        )
