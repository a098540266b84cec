"""Fleet-wide safety thresholds and their merge with remote config."""

import math
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict

from fleetwatch.lib.config.constants import (
    DEFAULT_MAX_HUMIDITY,
    DEFAULT_MAX_TEMPERATURE,
    DEFAULT_MIN_BATTERY,
)
from fleetwatch.logging import get_logger

logger = get_logger("lib.config.thresholds")


class Thresholds(BaseModel):
    """Safety thresholds shared by every unit in the fleet."""

    model_config = ConfigDict(frozen=True)

    max_humidity: float = DEFAULT_MAX_HUMIDITY
    max_temperature: float = DEFAULT_MAX_TEMPERATURE
    min_battery: int = DEFAULT_MIN_BATTERY

    def to_dict(self) -> dict[str, float | int]:
        """Wire form stored under configs/thresholds."""
        return self.model_dump()


DEFAULT_THRESHOLDS = Thresholds()


def _coerce(value: Any) -> float | None:
    """Return value as a finite number, or None when it is unusable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def merge_thresholds(raw: Mapping[str, Any] | None) -> Thresholds:
    """Overlay the recognized fields of a remote config onto the defaults.

    Each field defaults independently, so a partially populated or
    malformed config never leaves a field undefined. Unknown keys are
    ignored.
    """
    if not isinstance(raw, Mapping):
        return DEFAULT_THRESHOLDS

    fields: dict[str, float | int] = {}
    for name, default in DEFAULT_THRESHOLDS.to_dict().items():
        if raw.get(name) is None:
            continue
        number = _coerce(raw[name])
        if number is None:
            logger.warning(
                "Ignoring invalid threshold %s=%r, using default %s",
                name,
                raw[name],
                default,
            )
            continue
        fields[name] = int(number) if isinstance(default, int) else number

    return Thresholds(**fields)
