"""
Exceptions shared across the proxy layers.
"""

from typing import Optional


class GateProxyError(Exception):
    """Base exception for gate proxy failures."""


class UpstreamUnavailableError(GateProxyError):
    """Raised when the upstream API cannot be reached at all."""

    def __init__(self, endpoint: str, cause: Optional[Exception] = None):
        super().__init__(f"Upstream unreachable: {endpoint}")
        self.endpoint = endpoint
        self.cause = cause


class StoreError(GateProxyError):
    """Raised when the deleted-account store cannot be read or written."""


class StoreLookupError(StoreError):
    """Raised when a deleted-account lookup fails."""


class StoreWriteError(StoreError):
    """Raised when a deletion cannot be recorded."""
