"""Custom exception hierarchy for forgebridge."""


class ForgeBridgeError(Exception):
    """Base exception for all forgebridge errors."""

    pass


class ConfigError(ForgeBridgeError):
    """Raised when configuration or caller input is invalid.

    Always raised before any network call is made.
    """

    pass


class PlatformAPIError(ForgeBridgeError):
    """Raised when a forge REST or GraphQL request fails.

    Attributes:
        status: HTTP status code, or 0 for network failures
        endpoint: Request path or URL that failed
    """

    def __init__(self, status: int, endpoint: str, message: str) -> None:
        """Initialize API error.

        Args:
            status: HTTP status code (0 when no response was received)
            endpoint: Endpoint that was requested
            message: Error detail, usually the response body
        """
        self.status = status
        self.endpoint = endpoint
        super().__init__(f"API error {status} on {endpoint}: {message}")

    @property
    def is_not_found(self) -> bool:
        """Whether the forge answered 404."""
        return self.status == 404

    @property
    def is_retryable(self) -> bool:
        """Whether retrying could succeed (network failure or 5xx)."""
        return self.status == 0 or self.status >= 500


class UnsupportedCapabilityError(ForgeBridgeError):
    """Raised when an operation is not available on the active forge."""

    pass


class PlatformDataError(ForgeBridgeError):
    """Raised when a forge payload violates a canonical model invariant."""

    pass


class ActorValidationError(ForgeBridgeError):
    """Raised when the triggering actor is not allowed to run the agent."""

    pass


class ImageDownloadError(ForgeBridgeError):
    """Raised when an attached image cannot be downloaded."""

    pass
