"""
Circle lifecycle calculator.

Pure functions deriving a circle's phase, expiry warning and remaining
progress from its timestamps. No I/O; safe to call on every render tick.

The stored status is advisory: a circle is closed once its close time has
passed, whatever the status says, and an explicit "closed" status closes it
early.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Union

EXPIRING_SOON_WINDOW = timedelta(hours=24)


class CirclePhase(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class LifecycleSnapshot:
    """Derived lifecycle state at one instant."""
    phase: CirclePhase
    is_expiring_soon: bool
    remaining_progress: float

    @property
    def is_open(self) -> bool:
        return self.phase == CirclePhase.OPEN


def circle_phase(status: Union[str, Enum], close_at: datetime, now: datetime) -> CirclePhase:
    """Closed if the status says so or the close time has been reached."""
    status_value = status.value if isinstance(status, Enum) else status
    if status_value == CirclePhase.CLOSED.value or now >= close_at:
        return CirclePhase.CLOSED
    return CirclePhase.OPEN


def utc_now_ms() -> datetime:
    """Current UTC time truncated to the millisecond precision Mongo stores."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def _fraction(remaining: timedelta, total: timedelta) -> float:
    total_seconds = total.total_seconds()
    if total_seconds <= 0:
        return 0.0
    return min(1.0, max(0.0, remaining.total_seconds() / total_seconds))


def compute_lifecycle(
    status: Union[str, Enum],
    created_at: datetime,
    close_at: datetime,
    delete_at: datetime,
    now: datetime,
) -> LifecycleSnapshot:
    """
    Derive the lifecycle snapshot of a circle.

    Open circles report the fraction of the open window left; closed circles
    report the fraction of the deletion grace window left. Both are clamped
    to [0, 1] and a zero or negative window yields 0.

    Args:
        status: Stored status ("open" or "closed")
        created_at: Creation time
        close_at: Time the circle stops accepting photos
        delete_at: Time the circle becomes eligible for purge
        now: Current time (timezone-aware, same clock as the timestamps)

    Returns:
        LifecycleSnapshot
    """
    phase = circle_phase(status, close_at, now)

    if phase == CirclePhase.OPEN:
        return LifecycleSnapshot(
            phase=phase,
            is_expiring_soon=(close_at - now) < EXPIRING_SOON_WINDOW,
            remaining_progress=_fraction(close_at - now, close_at - created_at),
        )

    return LifecycleSnapshot(
        phase=phase,
        is_expiring_soon=False,
        remaining_progress=_fraction(delete_at - now, delete_at - close_at),
    )


def is_purge_eligible(delete_at: datetime, cleaned_up: bool, now: datetime) -> bool:
    """A circle is purged once, after its delete time."""
    return not cleaned_up and now >= delete_at


def format_elapsed(seconds: int) -> str:
    """Format a duration as MM:SS, or H:MM:SS from one hour up."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_countdown(target: datetime, now: datetime) -> str:
    """Countdown string to a deadline; empty once the deadline has passed."""
    remaining = int((target - now).total_seconds())
    if remaining <= 0:
        return ""
    return format_elapsed(remaining)


def circle_lifecycle(circle, now: datetime) -> LifecycleSnapshot:
    """Lifecycle snapshot for any object carrying the circle timestamp fields."""
    return compute_lifecycle(
        circle.status, circle.createdAt, circle.closeAt, circle.deleteAt, now
    )
