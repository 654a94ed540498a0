"""Repeated sampling: fixed count, or unbounded until cancelled."""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Sequence

from clockscope.constants import DEFAULT_COUNT, DEFAULT_INTERVAL_S
from clockscope.logging import CLOCKSCOPE_LOGGER
from clockscope.probing.compare_engine import CompareResult
from clockscope.probing.probe_errors import ProbeError, UsageError
from clockscope.probing.probe_models import Measurement, SampleSeries


class SamplingState(str, Enum):
    IDLE = "idle"
    PROBING = "probing"
    SLEEPING = "sleeping"
    DONE = "done"


@dataclass(frozen=True)
class SamplingPlan:
    """How many iterations to run and how far apart.

    Raises:
        UsageError: on construction when the combination is contradictory
    """

    count: int = DEFAULT_COUNT
    infinite: bool = False
    interval: float = DEFAULT_INTERVAL_S

    def __post_init__(self):
        if self.count < 1:
            raise UsageError("--count must be at least 1")
        if self.interval < 0:
            raise UsageError("--interval must be non-negative")
        if self.infinite and self.count != 1:
            raise UsageError("--infinite cannot be used with --count")
        if self.interval != DEFAULT_INTERVAL_S and not self.infinite and self.count == 1:
            raise UsageError("--interval requires --infinite or --count")

    @property
    def repeated(self) -> bool:
        """True when more than one iteration may run."""
        return self.infinite or self.count > 1


class SamplingLoop:
    """Drives a probe callable through a :class:`SamplingPlan`.

    Only the pause between iterations of an infinite run is cancellable: setting
    ``cancel_event`` ends the loop once the current iteration has been recorded.
    In-flight probes are never interrupted.
    """

    def __init__(self, plan: SamplingPlan, cancel_event: Optional[asyncio.Event] = None):
        self.plan = plan
        self.cancel_event = cancel_event
        self.state = SamplingState.IDLE
        self.iterations = 0

    async def run_single(
        self,
        probe: Callable[[], Awaitable[Measurement]],
        on_sample: Optional[Callable[[Measurement], None]] = None,
        abort_on_error: bool = True,
        *,
        name: str = "",
        on_failure: Optional[Callable[[ProbeError], None]] = None,
    ) -> SampleSeries:
        """Sample one target.

        Args:
            probe: Coroutine function performing one query
            on_sample: Called after each successful iteration
            abort_on_error: Re-raise the first failure (interactive mode);
                otherwise record it and keep sampling (plugin mode)
            name: Target name used for the series
            on_failure: Called after each failed iteration that does not abort

        Returns:
            SampleSeries with every successful measurement in order

        Raises:
            ProbeError: the first failure, when ``abort_on_error`` is set
        """
        series = SampleSeries(name=name)

        async def iteration():
            try:
                measurement = await probe()
            except ProbeError as e:
                if abort_on_error:
                    raise
                CLOCKSCOPE_LOGGER.warning(f"Sample {self.iterations + 1} for {name} failed: {e}")
                series.record_failure(e)
                self._notify(on_failure, e)
                return
            series.append(measurement)
            self._notify(on_sample, measurement)

        await self._run(iteration)
        return series

    async def run_many(
        self,
        probe_many: Callable[[], Awaitable[CompareResult]],
        names: Sequence[str],
        on_batch: Optional[Callable[[CompareResult], None]] = None,
    ) -> Dict[str, SampleSeries]:
        """Sample several targets per iteration through a fan-out callable.

        Per-target failures are recorded in each series; an error raised by
        ``probe_many`` itself (the whole batch failed) ends the run.

        Returns:
            One SampleSeries per name, keyed and ordered like ``names``
        """
        all_series = {name: SampleSeries(name=name) for name in names}

        async def iteration():
            result = await probe_many()
            for measurement in result.measurements:
                all_series.setdefault(measurement.target.name, SampleSeries(measurement.target.name)).append(
                    measurement
                )
            for name, error in result.failures:
                all_series.setdefault(name, SampleSeries(name)).record_failure(error)
            self._notify(on_batch, result)

        await self._run(iteration)
        return all_series

    async def _run(self, iteration: Callable[[], Awaitable[None]]) -> None:
        self.iterations = 0
        try:
            while True:
                self.state = SamplingState.PROBING
                await iteration()
                self.iterations += 1

                if not self.plan.infinite and self.iterations >= self.plan.count:
                    break

                self.state = SamplingState.SLEEPING
                if await self._pause():
                    CLOCKSCOPE_LOGGER.info(f"Sampling cancelled after {self.iterations} iterations")
                    break
        finally:
            self.state = SamplingState.DONE

    async def _pause(self) -> bool:
        """Sleep for the plan interval. Returns True if the run was cancelled."""
        if not self.plan.infinite or self.cancel_event is None:
            await asyncio.sleep(self.plan.interval)
            return False

        if self.cancel_event.is_set():
            return True
        try:
            await asyncio.wait_for(self.cancel_event.wait(), timeout=self.plan.interval)
        except asyncio.TimeoutError:
            return False
        return True

    @staticmethod
    def _notify(callback, value) -> None:
        if callback is None:
            return
        try:
            callback(value)
        except Exception as e:
            # Presentation problems never count as probe failures
            CLOCKSCOPE_LOGGER.error(f"Output callback failed: {e}", exc_info=True)
