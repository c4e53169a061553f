"""Error taxonomy shared by the transport, adapters and stores.

Transport and adapter failures never cross the adapter boundary: adapters turn them
into ``SearchResult(success=False)``. Extraction and persistence errors are caught where
they happen (per HTML row, per storage key) and only logged.
"""


class LaneDeskError(Exception):
    """Base class for all project errors."""


class TransportError(LaneDeskError):
    """Any failure delivering a message to the extension."""

    retryable = True


class TransportUnavailable(TransportError):
    """No channel to the extension exists at all. Terminal for the call."""

    retryable = False


# Name used by the transport layer for the same condition.
ChannelUnavailable = TransportUnavailable


class TransportTimeout(TransportError, TimeoutError):
    """No correlated response arrived within the request bound."""


class RequestRejected(TransportError):
    """The channel reported a delivery failure."""


class ProviderRejected(RequestRejected):
    """The extension delivered the request but the provider side reported an error."""


class ExtractionRowError(LaneDeskError):
    """One HTML row could not be turned into a load. The row is skipped."""

    def __init__(self, message: str, row_html: str = ""):
        super().__init__(message)
        self.row_html = row_html


class PersistenceCorrupt(LaneDeskError):
    """A persisted collection could not be read back. The collection resets to empty."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"stored value for '{key}' is unreadable: {reason}")
        self.key = key
        self.reason = reason
