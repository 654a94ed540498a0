"""Command orchestration: sampling runs, rendering and exit codes.

The click layer in ``__main__`` validates arguments and builds the option
objects; :class:`CommandRunner` drives the probes and decides what is printed
and which exit code the process returns.
"""

import asyncio
import signal
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

import click

from clockscope.constants import DEFAULT_FORMAT, DEFAULT_TIMEOUT_S
from clockscope.logging import CLOCKSCOPE_LOGGER
from clockscope.monitoring.plugin_status import PluginStatus, validate_thresholds
from clockscope.output import json_renderer, text_renderer
from clockscope.probing.compare_engine import CompareEngine, CompareResult
from clockscope.probing.probe_errors import ProbeError, UsageError, exit_code_for
from clockscope.probing.probe_models import Measurement, SampleSeries
from clockscope.probing.probe_stats import compute_stats, compute_stats_by_target, max_average_drift
from clockscope.probing.query_service import QueryService
from clockscope.probing.sampling_loop import SamplingLoop, SamplingPlan
from clockscope.protocols.abstract_protocol_probe import ProbeOptions, Protocol

SHORT_FORMATS = ("simple", "json-short")
JSON_FORMATS = ("json", "json-short")


@dataclass(frozen=True)
class OutputOptions:
    """How results are presented."""

    format: str = DEFAULT_FORMAT
    pretty: bool = False
    verbose: bool = False
    color: Optional[bool] = None
    """Passed to click.echo: False strips styles, None lets click decide per stream."""


@dataclass(frozen=True)
class PluginOptions:
    """Monitoring plugin mode and its offset thresholds."""

    enabled: bool = False
    warning: Optional[float] = None
    critical: Optional[float] = None

    def validate(self) -> None:
        """
        Raises:
            UsageError: thresholds without plugin mode, or invalid thresholds
        """
        if not self.enabled:
            if self.warning is not None or self.critical is not None:
                raise UsageError("--warning and --critical require --plugin")
            return
        validate_thresholds(self.warning, self.critical)


@dataclass(frozen=True)
class QueryOptions:
    """Per-query knobs shared by every iteration of a run."""

    timeout: float = DEFAULT_TIMEOUT_S
    ipv6: bool = False
    probe: ProbeOptions = field(default_factory=ProbeOptions)


class CommandRunner:
    """
    Runs single-target and compare commands to completion.

    Every public ``run_*`` coroutine returns the process exit code; probe
    failures never escape as exceptions.
    """

    def __init__(
        self,
        query_service: Optional[QueryService] = None,
        echo: Callable[..., None] = click.echo,
    ):
        """
        Initialize the runner.

        Args:
            query_service: Service used for every probe; built with the default
                protocol registry if omitted
            echo: Output function with :func:`click.echo`'s signature
        """
        self.query_service = query_service if query_service is not None else QueryService()
        self.engine = CompareEngine(self.query_service)
        self.echo = echo
        self.cancel_event: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self, coroutine_factory: Callable[[], Awaitable[int]], plan: SamplingPlan) -> int:
        """Run a command coroutine on a fresh event loop and return its exit code."""
        return asyncio.run(self._with_cancellation(coroutine_factory, plan))

    async def _with_cancellation(self, coroutine_factory, plan: SamplingPlan) -> int:
        self.cancel_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        installed = False
        if plan.infinite:
            # Ctrl-C ends an infinite run after the current iteration
            try:
                loop.add_signal_handler(signal.SIGINT, self.cancel_event.set)
                installed = True
            except (NotImplementedError, RuntimeError):
                CLOCKSCOPE_LOGGER.debug("SIGINT handler unavailable; Ctrl-C will interrupt immediately")
        try:
            return await coroutine_factory()
        finally:
            if installed:
                loop.remove_signal_handler(signal.SIGINT)

    async def run_single(
        self,
        target: str,
        plan: SamplingPlan,
        query: QueryOptions,
        output: OutputOptions,
        plugin: PluginOptions = PluginOptions(),
    ) -> int:
        """
        Sample one target according to ``plan``.

        Args:
            target: Target string as typed by the user
            plan: Count, interval and infinite mode
            query: Timeout, address family and protocol options
            output: Presentation options (ignored in plugin mode)
            plugin: Plugin mode and thresholds

        Returns:
            Process exit code: 0 on success, the probe error's code in
            interactive mode, the verdict's code in plugin mode
        """
        sampler = SamplingLoop(plan, self.cancel_event)

        def on_sample(measurement: Measurement) -> None:
            if not plugin.enabled:
                self._emit_iteration(measurement, plan, output)

        try:
            series = await sampler.run_single(
                lambda: self.query_service.query_one(target, query.ipv6, query.timeout, query.probe),
                on_sample,
                abort_on_error=not plugin.enabled,
                name=target,
            )
        except ProbeError as e:
            self._write(text_renderer.render_error, e, output=output, err=True)
            return exit_code_for(e)

        is_ptp = query.probe.protocol is Protocol.PTP
        if plugin.enabled:
            return self._emit_plugin_status(series, plugin, is_ptp)

        if len(series) > 1:
            stats = compute_stats(series)
            if output.format in JSON_FORMATS:
                self._write(json_renderer.stats_to_json, target, stats, output.pretty, output=output)
            else:
                self._write(text_renderer.render_stats, target, stats, is_ptp, output=output)
        return 0

    async def run_compare(
        self,
        targets: Sequence[str],
        plan: SamplingPlan,
        query: QueryOptions,
        output: OutputOptions,
    ) -> int:
        """
        Sample several targets concurrently according to ``plan``.

        Per-target failures are printed next to the successes. Only a batch in
        which every target failed ends the run with that failure's exit code.
        """
        sampler = SamplingLoop(plan, self.cancel_event)

        def on_batch(result: CompareResult) -> None:
            self._emit_batch(result, plan, output)

        try:
            all_series = await sampler.run_many(
                lambda: self.engine.compare(targets, query.ipv6, query.timeout, query.probe),
                targets,
                on_batch,
            )
        except ProbeError as e:
            self._write(text_renderer.render_error, e, output=output, err=True)
            return exit_code_for(e)

        if sum(len(s) for s in all_series.values()) > len(targets):
            self._emit_compare_stats(all_series, output, query.probe.protocol is Protocol.PTP)
        return 0

    # ------------------------------------------------------------------
    # Output helpers
    # ------------------------------------------------------------------

    def _write(self, render: Callable[..., str], *args, output: OutputOptions, err: bool = False) -> None:
        try:
            text = render(*args)
        except Exception as e:
            # Presentation problems never turn into probe failures
            CLOCKSCOPE_LOGGER.error(f"Failed to render output with {render.__name__}: {e}", exc_info=True)
            return
        self.echo(text, err=err, color=output.color)

    def _emit_results(
        self,
        measurements: List[Measurement],
        output: OutputOptions,
        failures: Sequence[Tuple[str, ProbeError]] = (),
    ) -> None:
        single = len(measurements) == 1 and not failures
        fmt = output.format
        if fmt == "json":
            self._write(json_renderer.to_json, measurements, output.pretty, output.verbose, failures, output=output)
        elif fmt == "text":
            if single:
                self._write(text_renderer.render_probe, measurements[0], output.verbose, output=output)
            else:
                self._write(text_renderer.render_compare, measurements, output.verbose, failures, output=output)
        else:
            # Short formats carry no error fields; failures go to stderr
            if fmt == "json-short":
                self._write(json_renderer.to_short_json, measurements, output.pretty, output=output)
            elif single:
                self._write(text_renderer.render_simple_probe, measurements[0], output=output)
            elif measurements:
                self._write(text_renderer.render_simple_compare, measurements, output=output)
            self._emit_failures(failures, output)

    def _emit_failures(self, failures: Sequence[Tuple[str, ProbeError]], output: OutputOptions) -> None:
        for name, error in failures:
            self._write(text_renderer.render_error, f"{name}: {error}", output=output, err=True)

    def _emit_iteration(self, measurement: Measurement, plan: SamplingPlan, output: OutputOptions) -> None:
        if not plan.repeated:
            self._emit_results([measurement], output)
        elif output.format == "text":
            if output.verbose:
                self._write(text_renderer.render_probe, measurement, True, output=output)
            else:
                self._write(text_renderer.render_short_probe, measurement, output=output)
        elif output.format == "json-short":
            self._write(json_renderer.probe_to_short_json, measurement, output=output)
        else:
            self._emit_results([measurement], output)

    def _emit_batch(self, result: CompareResult, plan: SamplingPlan, output: OutputOptions) -> None:
        if not plan.repeated or output.format in ("json", "simple") or output.verbose:
            self._emit_results(result.measurements, output, result.failures)
            return
        if output.format == "json-short":
            for measurement in result.measurements:
                self._write(json_renderer.probe_to_short_json, measurement, output=output)
        elif result.measurements:
            self._write(text_renderer.render_short_compare, result.measurements, output=output)
        self._emit_failures(result.failures, output)

    def _emit_compare_stats(self, all_series, output: OutputOptions, is_ptp: bool) -> None:
        stats_by_target = compute_stats_by_target(all_series)
        stats_list = sorted(stats_by_target.items())
        if output.format in JSON_FORMATS:
            self._write(json_renderer.stats_list_to_json, stats_list, output.pretty, output=output)
            return

        for name, stats in stats_list:
            self._write(text_renderer.render_stats, name, stats, is_ptp, output=output)
        drift = max_average_drift(stats_by_target)
        if drift is not None:
            self._write(text_renderer.render_max_avg_drift, drift, output=output)

    def _emit_plugin_status(self, series: SampleSeries, plugin: PluginOptions, is_ptp: bool) -> int:
        stats = compute_stats(series) if len(series) > 0 else None
        # Partial failures do not force UNKNOWN: the verdict covers the samples
        # that succeeded, and only a run with no success at all is UNKNOWN.
        if series.failures:
            CLOCKSCOPE_LOGGER.info(f"{len(series.failures)} of {series.attempts} samples failed for {series.name}")
        build = PluginStatus.for_ptp if is_ptp else PluginStatus.for_ntp
        # Host and address come from the first successful sample
        status = build(stats, series.first(), plugin.warning, plugin.critical)
        self.echo(status.line)
        return status.exit_code
