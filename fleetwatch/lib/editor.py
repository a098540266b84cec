"""Draft-and-save editing of the fleet thresholds.

Edits go to a local draft and do not affect classification until saved.
A failed save keeps the draft so the user can retry.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fleetwatch.lib.config import (
    THRESHOLD_INPUT_MAX,
    THRESHOLD_INPUT_MIN,
    Thresholds,
)
from fleetwatch.lib.eventbus import Subscription
from fleetwatch.lib.exceptions import (
    InvalidThresholdError,
    StoreError,
    ThresholdSaveError,
)
from fleetwatch.lib.monitor import FleetMonitor
from fleetwatch.lib.store import FleetStore
from fleetwatch.logging import get_logger

logger = get_logger("lib.editor")


class _ThresholdInput(BaseModel):
    """Bounds accepted from the editing surface."""

    model_config = ConfigDict(extra="forbid")

    max_humidity: float = Field(ge=THRESHOLD_INPUT_MIN, le=THRESHOLD_INPUT_MAX)
    max_temperature: float = Field(ge=THRESHOLD_INPUT_MIN, le=THRESHOLD_INPUT_MAX)
    min_battery: int = Field(ge=THRESHOLD_INPUT_MIN, le=THRESHOLD_INPUT_MAX)


class ThresholdEditor:
    """Holds a draft of the thresholds and writes it back to the store."""

    def __init__(self, store: FleetStore, monitor: FleetMonitor) -> None:
        self._store = store
        self._monitor = monitor
        self._active = monitor.thresholds
        self._draft = self._active
        self._subscription: Subscription | None = None

    def start(self) -> None:
        """Follow remote threshold updates while the draft is untouched."""
        if self._subscription is None:
            self._subscription = self._monitor.subscribe_thresholds(self._on_remote)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def _on_remote(self, thresholds: Thresholds) -> None:
        dirty = self.is_dirty
        self._active = thresholds
        if not dirty:
            self._draft = thresholds

    @property
    def draft(self) -> Thresholds:
        return self._draft

    @property
    def is_dirty(self) -> bool:
        """True when the draft differs from the active thresholds."""
        return self._draft != self._active

    def update(self, **fields: Any) -> Thresholds:
        """Apply edits to the draft.

        Raises:
            InvalidThresholdError: If a field is unknown or out of bounds.
        """
        try:
            checked = _ThresholdInput(**{**self._draft.to_dict(), **fields})
        except ValidationError as e:
            raise InvalidThresholdError(str(e)) from None
        self._draft = Thresholds(**checked.model_dump())
        return self._draft

    def reset(self) -> Thresholds:
        """Discard the draft and go back to the active thresholds."""
        self._draft = self._active
        return self._draft

    async def save(self) -> Thresholds:
        """Write the draft to the store as a whole-object replace.

        Raises:
            ThresholdSaveError: If the store rejects the write. The draft is
                left untouched for a retry.
        """
        draft = self._draft
        try:
            await self._store.save_thresholds(draft)
        except StoreError as e:
            logger.error("Failed to save thresholds: %s", e)
            raise ThresholdSaveError() from e
        self._active = draft
        logger.info("Thresholds saved: %s", draft.to_dict())
        return draft
