"""Concurrent fan-out of single-target queries."""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from clockscope.constants import DEFAULT_TIMEOUT_S
from clockscope.logging import CLOCKSCOPE_LOGGER
from clockscope.probing.probe_errors import ProbeError
from clockscope.probing.probe_models import Measurement
from clockscope.probing.query_service import QueryService
from clockscope.protocols.abstract_protocol_probe import ProbeOptions


@dataclass
class CompareResult:
    """Outcome of one fan-out batch, both lists in input order."""

    measurements: List[Measurement] = field(default_factory=list)
    failures: List[Tuple[str, ProbeError]] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return not self.measurements and bool(self.failures)


class CompareEngine:
    """Runs one query per target concurrently and waits for all of them.

    A failing target never cancels the others; it is reported in
    ``CompareResult.failures`` next to the successes.
    """

    def __init__(self, query_service: Optional[QueryService] = None):
        self.query_service = query_service if query_service is not None else QueryService()

    async def gather(
        self,
        targets: Sequence[str],
        ipv6: bool = False,
        timeout: float = DEFAULT_TIMEOUT_S,
        options: Optional[ProbeOptions] = None,
    ) -> CompareResult:
        """Probe every target and sort outcomes into successes and failures.

        Raises:
            ProbeError: only for a structural problem (an empty target list)
        """
        if not targets:
            raise ProbeError.other("no targets to compare")

        outcomes = await asyncio.gather(
            *(self.query_service.query_one(t, ipv6, timeout, options) for t in targets),
            return_exceptions=True,
        )

        result = CompareResult()
        for name, outcome in zip(targets, outcomes):
            if isinstance(outcome, Measurement):
                result.measurements.append(outcome)
            elif isinstance(outcome, ProbeError):
                CLOCKSCOPE_LOGGER.warning(f"Compare: {name} failed: {outcome}")
                result.failures.append((name, outcome.with_target(name)))
            elif isinstance(outcome, Exception):
                CLOCKSCOPE_LOGGER.error(f"Compare: {name} raised {outcome!r}", exc_info=outcome)
                result.failures.append((name, ProbeError.other(str(outcome)).with_target(name)))
            else:
                # BaseException (e.g. cancellation) is not a per-target failure
                raise outcome
        return result

    async def compare(
        self,
        targets: Sequence[str],
        ipv6: bool = False,
        timeout: float = DEFAULT_TIMEOUT_S,
        options: Optional[ProbeOptions] = None,
    ) -> CompareResult:
        """Like :meth:`gather`, but a batch where every target failed is an error.

        Raises:
            ProbeError: the first failure in input order when nothing succeeded
        """
        result = await self.gather(targets, ipv6, timeout, options)
        if result.all_failed:
            raise result.failures[0][1]
        return result
