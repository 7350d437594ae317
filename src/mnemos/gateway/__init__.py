"""Connection gateway: credentials, sessions, rate limiting and wire events."""

from mnemos.gateway.events import (
    AssistantMessageEvent,
    ErrorEvent,
    RateLimitedEvent,
    UserMessageEvent,
    WireEvent,
)
from mnemos.gateway.session import ConnectionSession
from mnemos.gateway.auth import CredentialVerifier, Identity, JWTCredentialVerifier, issue_token
from mnemos.gateway.rate_limit import RateLimiter
from mnemos.gateway.gateway import ConnectionGateway

__all__ = [
    "AssistantMessageEvent",
    "ConnectionGateway",
    "ConnectionSession",
    "CredentialVerifier",
    "ErrorEvent",
    "Identity",
    "JWTCredentialVerifier",
    "RateLimitedEvent",
    "RateLimiter",
    "UserMessageEvent",
    "WireEvent",
    "issue_token",
]
