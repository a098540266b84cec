"""Edge-triggered alarm on the fleet entering the Critical state.

The alarm fires once per entry into Critical, not on every recomputation
while the fleet stays Critical. Acknowledging silences it until the next
fresh entry.

State machine:

    QUIESCENT --(overall becomes Critical)--> ALARMED
    ALARMED --(overall leaves Critical)--> QUIESCENT
    ALARMED --(acknowledge)--> QUIESCENT
"""

from collections.abc import Callable
from enum import Enum, auto
from typing import Protocol

from fleetwatch.lib.aggregator import FleetSnapshot
from fleetwatch.lib.config import FleetStatus
from fleetwatch.lib.eventbus import Channel, Handler, Subscription
from fleetwatch.logging import get_logger

logger = get_logger("lib.alarm")


class AlarmState(Enum):
    """Possible alarm states."""

    QUIESCENT = auto()
    ALARMED = auto()


class AlarmCues(Protocol):
    """Best-effort side effects attached to alarm transitions."""

    def alarm(self, snapshot: FleetSnapshot) -> None:
        """High-priority cue when the alarm fires."""
        ...

    def dismissed(self) -> None:
        """Low-priority confirmation cue when the alarm is acknowledged."""
        ...


class CriticalAlarm:
    """Two-state alarm fed with every fleet snapshot."""

    def __init__(self, cues: AlarmCues | None = None) -> None:
        self._cues = cues
        self._state = AlarmState.QUIESCENT
        self._previous: FleetStatus | None = None
        self._activations = 0
        self._changes: Channel[AlarmState] = Channel("alarm.state")

    @property
    def state(self) -> AlarmState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == AlarmState.ALARMED

    @property
    def activations(self) -> int:
        """Number of times the alarm has fired."""
        return self._activations

    def subscribe(self, handler: Handler[AlarmState]) -> Subscription:
        """Be told about every alarm state change."""
        return self._changes.subscribe(handler, replay=False)

    def _transition(self, new: AlarmState) -> None:
        self._state = new
        self._changes.publish(new)

    def observe(self, snapshot: FleetSnapshot) -> bool:
        """Feed a new snapshot; returns True if the alarm fired."""
        status = snapshot.overall_status
        entered = (
            status == FleetStatus.CRITICAL
            and self._previous != FleetStatus.CRITICAL
        )
        self._previous = status

        if entered:
            self._activations += 1
            logger.warning(
                "Fleet entered Critical: %d critical unit(s) %s",
                snapshot.critical_count,
                ", ".join(snapshot.critical_units),
            )
            self._transition(AlarmState.ALARMED)
            if self._cues is not None:
                cues = self._cues
                self._run_cue("alarm", lambda: cues.alarm(snapshot))
            return True

        if status != FleetStatus.CRITICAL and self.is_active:
            logger.info("Fleet left Critical (%s), alarm cleared", status)
            self._transition(AlarmState.QUIESCENT)
        return False

    def acknowledge(self) -> bool:
        """Dismiss an active alarm; returns False if there was none."""
        if not self.is_active:
            return False
        logger.info("Alarm acknowledged")
        self._transition(AlarmState.QUIESCENT)
        if self._cues is not None:
            self._run_cue("dismissed", self._cues.dismissed)
        return True

    def _run_cue(self, name: str, cue: Callable[[], None]) -> None:
        # Cue failures never affect the state machine
        try:
            cue()
        except Exception:
            logger.exception("Alarm %s cue failed", name)
