"""Messaging-layer exceptions. Never propagated to the task mutation path."""


class MessagingError(Exception):
    """Base for broker-related errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class BrokerConnectionError(MessagingError):
    """Broker unreachable at connect time, or an established connection dropped. Triggers backoff reconnection."""


class ChannelUnavailable(MessagingError):
    """The channel was requested while the connection manager is not connected."""


class PublishFailure(MessagingError):
    """A single publish could not be transmitted. Logged and counted, never raised to the caller."""
