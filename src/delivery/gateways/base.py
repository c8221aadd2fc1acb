"""Gateway interface.

The delivery client depends on this small interface so the transport to the
collector (HTTP, IPC, in-process) can be swapped without touching the
buffering logic.
"""

from __future__ import annotations

from typing import Any, Protocol

from records.models import Record


class ConnectionCallbacks(Protocol):
    """Completion callbacks for one connection attempt.

    Gateways must deliver these from a separate task (or hop back to the
    client's loop from a thread); never await them inside `try_connect`.
    """

    async def on_connected(self) -> None:
        """The connection is ready; pending records may be sent."""

    async def on_disconnected(self) -> None:
        """The connection was lost or could not be completed."""


class ConnectionGateway(Protocol):
    async def try_connect(self, callbacks: ConnectionCallbacks) -> bool:
        """Begin connecting without blocking.

        Return False when connecting cannot even be started; otherwise the
        outcome is reported later through `callbacks`.
        """

    async def send(self, record: Record) -> Any:
        """Send a single finalized record and return the collector's result."""

    async def disconnect(self) -> None:
        """Tear down the connection (or the pending attempt)."""
