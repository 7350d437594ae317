"""Channel adapters binding transports to the connection gateway."""

from mnemos.channels.base import ChannelAdapter
from mnemos.channels.web import WebChatAdapter

__all__ = ["ChannelAdapter", "WebChatAdapter"]
