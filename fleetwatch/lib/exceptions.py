"""Custom exceptions for the FleetWatch application.

Nothing in the classification engine raises: missing or stale data resolves
to defaults, ``Offline`` or ``No Data``. These exceptions cover the edges
where a caller has to react, such as store writes and notification delivery.
"""


class FleetWatchError(Exception):
    """Base exception for all application errors."""


class StoreError(FleetWatchError):
    """Base exception for remote store errors."""


class StoreNotConnectedError(StoreError):
    """Raised when attempting store operations without a connection."""

    def __init__(self, message: str = "Store not connected") -> None:
        super().__init__(message)


class StoreWriteError(StoreError):
    """Raised when a write to the remote store fails."""


class InvalidThresholdError(FleetWatchError):
    """Raised when a threshold draft edit is out of bounds."""


class ThresholdSaveError(FleetWatchError):
    """Raised when saving thresholds fails; the draft is kept for a retry."""

    def __init__(
        self,
        user_message: str = "Failed to save. Check your store permissions.",
    ) -> None:
        super().__init__(user_message)
        self.user_message = user_message
