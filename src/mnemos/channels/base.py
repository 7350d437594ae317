"""Base protocol for channel adapters."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from mnemos.gateway.events import WireEvent


@runtime_checkable
class ChannelAdapter(Protocol):
    """Protocol for real-time channel adapters.

    Each adapter binds a transport to the connection gateway: it extracts
    the credential, opens a session, feeds inbound frames to the gateway
    and writes outbound events back to the client.
    """

    async def start(self) -> None:
        """Start accepting connections."""
        ...

    async def stop(self) -> None:
        """Close every connection and clean up."""
        ...

    async def send_event(self, connection_id: str, event: WireEvent) -> bool:
        """Send an event to one connection.

        Args:
            connection_id: Session connection id
            event: Event to send

        Returns:
            True if the connection exists and the event was sent
        """
        ...
