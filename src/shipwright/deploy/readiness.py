"""Readiness polling.

``ReadinessPoller`` waits for the hosting platform to report that a freshly
triggered deployment reached a terminal state. It is a single loop over an
explicit state (polling -> ready | failed | timedOut) with an elapsed-time
counter and a fixed interval.

Each cycle sleeps one interval and then polls. A new cycle starts only while
the elapsed time is below ``max_wait_ms``, so a call returns within
``max_wait_ms`` plus one interval. Each poll is handed the remaining budget
as its timeout so a slow status command cannot stretch that bound.

Example::

    poller = ReadinessPoller()
    outcome = poller.wait_for_ready(platform.status, max_wait_ms=180_000, interval_ms=10_000)
    outcome.attempts
"""

from __future__ import annotations

import time
from collections.abc import Callable

from shipwright.core.errors import DeploymentFailedError, ExecutionError, TimeoutError
from shipwright.deploy.config import DEFAULT_MAX_WAIT_MS, DEFAULT_POLL_INTERVAL_MS
from shipwright.deploy.platform import StatusSignal, classify_status
from shipwright.deploy.results import PollOutcome, PollState
from shipwright.logging import get_logger

logger = get_logger(__name__)

# Called with the time left in the wait budget, in milliseconds.
StatusProbe = Callable[[int], str]


class ReadinessPoller:
    """Polls a status probe until success, failure or timeout.

    ``clock`` returns seconds (``time.monotonic``) and ``sleep`` takes seconds
    (``time.sleep``); tests substitute a fake clock that advances on sleep.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.clock = clock
        self.sleep = sleep

    def wait_for_ready(
        self,
        status_probe: StatusProbe,
        max_wait_ms: int = DEFAULT_MAX_WAIT_MS,
        interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> PollOutcome:
        """Block until the platform reports a terminal state.

        Returns:
            PollOutcome with state ``ready``.

        Raises:
            DeploymentFailedError: the platform reported a failure.
            TimeoutError: ``max_wait_ms`` elapsed without a terminal state.
        """
        if max_wait_ms <= 0 or interval_ms <= 0:
            raise ValueError("max_wait_ms and interval_ms must be positive")

        started = self.clock()
        state = PollState.POLLING
        attempts = 0
        last_status: str | None = None

        def elapsed_ms() -> float:
            return (self.clock() - started) * 1000

        while state is PollState.POLLING:
            if elapsed_ms() >= max_wait_ms:
                state = PollState.TIMED_OUT
                break

            self.sleep(interval_ms / 1000)
            attempts += 1

            budget_ms = max(1, int(max_wait_ms + interval_ms - elapsed_ms()))
            try:
                last_status = status_probe(budget_ms)
            except ExecutionError as e:
                logger.debug("readiness.probe_error", attempt=attempts, error=str(e))
                signal = StatusSignal.INCONCLUSIVE
            else:
                signal = classify_status(last_status)

            if signal is StatusSignal.SUCCESS:
                state = PollState.READY
            elif signal is StatusSignal.FAILURE:
                state = PollState.FAILED
            else:
                logger.info(
                    "readiness.polling",
                    attempt=attempts,
                    elapsed_s=round(elapsed_ms() / 1000),
                    max_wait_s=round(max_wait_ms / 1000),
                )

        waited = elapsed_ms()
        if state is PollState.READY:
            logger.info("readiness.ready", attempts=attempts, elapsed_ms=round(waited))
            return PollOutcome(state=state, attempts=attempts, elapsed_ms=waited, last_status=last_status)

        if state is PollState.FAILED:
            logger.warning("readiness.failed", attempts=attempts, elapsed_ms=round(waited))
            raise DeploymentFailedError(
                "Platform reported a failed deployment",
            ).with_context(step="waitingForReadiness", attempts=attempts, last_status=last_status)

        logger.warning("readiness.timed_out", attempts=attempts, elapsed_ms=round(waited))
        raise TimeoutError(
            f"Deployment did not become ready within {max_wait_ms // 1000}s",
            waited_ms=int(waited),
        ).with_context(step="waitingForReadiness", attempts=attempts)
