"""
Readiness wait - block until an app reports enough running instances.

Polls AppExaminer.running_instances() at a fixed interval until the desired
count is running or the deadline passes. The deadline only stops the local
wait: the app itself is never touched, so a timed-out app keeps starting in
the background.

Clock and sleep are injectable so the loop can be driven by a fake clock.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from servicectl.clients.runtime import AppExaminer
from servicectl.errors import AppRuntimeError, PlacementError, ReadinessTimeoutError
from servicectl.utils import format_duration

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0

PLACEMENT_ERROR_MESSAGE = (
    "Error, could not place all instances: insufficient resources. "
    "Try requesting fewer instances or reducing the requested memory or disk capacity."
)


@dataclass(frozen=True)
class ReadinessResult:
    """Outcome of a successful wait."""
    running: int
    desired: int
    polls: int
    elapsed: float


def wait_for_instances(
    examiner: AppExaminer,
    app_name: str,
    desired: int,
    timeout: float,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> ReadinessResult:
    """
    Wait for `desired` instances of `app_name` to be running.

    Each sleep is capped at the time left before the deadline, so the wait
    returns within timeout + one poll interval of starting.

    Args:
        examiner: Source of instance counts
        app_name: App to watch
        desired: Instance count that counts as ready
        timeout: Seconds to wait before giving up
        poll_interval: Seconds between polls
        clock: Monotonic time source
        sleep: Sleep function

    Returns:
        ReadinessResult

    Raises:
        ReadinessTimeoutError: Deadline passed before enough instances ran
        PlacementError: The platform reported it cannot place all instances
        AppRuntimeError: The examiner call failed
    """
    if poll_interval <= 0:
        raise ValueError("poll_interval must be > 0")

    started = clock()
    deadline = started + timeout
    polls = 0
    running = 0

    while True:
        polls += 1
        try:
            running, placement_error = examiner.running_instances(app_name)
        except Exception as e:
            raise AppRuntimeError(f"Failed to poll status of {app_name}: {e}") from e

        logger.debug(f"Poll {polls}: {running}/{desired} instances of {app_name} running")

        if placement_error:
            raise PlacementError(PLACEMENT_ERROR_MESSAGE)
        if running >= desired:
            return ReadinessResult(
                running=running,
                desired=desired,
                polls=polls,
                elapsed=clock() - started,
            )

        remaining = deadline - clock()
        if remaining <= 0:
            break
        sleep(min(poll_interval, remaining))

    raise ReadinessTimeoutError(
        f"Timed out waiting for {app_name}: {running}/{desired} instances running "
        f"after {format_duration(timeout)}. The app is still starting in the background.",
        running=running,
        desired=desired,
    )
