import subprocess
import sys
from dataclasses import dataclass
from typing import Optional

import click
from pydantic import ValidationError

from clockscope import __version__
from clockscope.commands import SHORT_FORMATS, CommandRunner, OutputOptions, PluginOptions, QueryOptions
from clockscope.constants import (
    APP_NAME,
    CONFIG_KEYS,
    DEFAULT_COUNT,
    DEFAULT_INTERVAL_S,
    NTS_KE_PORT,
    OUTPUT_FORMATS,
    PTP_DEFAULT_DOMAIN,
    PTP_EVENT_PORT,
    PTP_GENERAL_PORT,
)
from clockscope.logging import CLOCKSCOPE_LOGGER, set_log_level
from clockscope.output.text_renderer import resolve_color
from clockscope.probing.probe_errors import UsageError
from clockscope.probing.sampling_loop import SamplingPlan
from clockscope.protocols.abstract_protocol_probe import ProbeOptions, Protocol
from clockscope.settings import ClockScopeSettings, ConfigError, ConfigManager


@dataclass
class AppContext:
    settings: ClockScopeSettings
    config: ConfigManager


# ----------------------------------------------------------------------
# Shared option groups
# ----------------------------------------------------------------------


def probe_options(f):
    f = click.option("-6", "--ipv6", is_flag=True, default=False, help="Resolve to IPv6 addresses only")(f)
    f = click.option("-8", "--infinite", is_flag=True, default=False, help="Probe until interrupted (Ctrl-C)")(f)
    f = click.option(
        "--timeout",
        type=click.FloatRange(min=0, min_open=True),
        default=None,
        help="Per-probe timeout in seconds (default: stored default or 5.0)",
    )(f)
    f = click.option(
        "-i",
        "--interval",
        type=click.FloatRange(min=0),
        default=DEFAULT_INTERVAL_S,
        show_default=True,
        help="Seconds between probes (requires --count or --infinite)",
    )(f)
    f = click.option("-c", "--count", type=int, default=DEFAULT_COUNT, show_default=True, help="Number of probes")(f)
    return f


def output_options(f):
    f = click.option("--no-color", is_flag=True, default=False, help="Disable colored output")(f)
    f = click.option("-p", "--pretty", is_flag=True, default=False, help="Pretty-print JSON output")(f)
    f = click.option("-S", "--short", is_flag=True, default=False, help="Shortcut for --format simple")(f)
    f = click.option("-j", "--json", "json_output", is_flag=True, default=False, help="Shortcut for --format json")(f)
    f = click.option(
        "-f",
        "--format",
        "output_format",
        type=click.Choice(OUTPUT_FORMATS),
        default=None,
        help="Output format (default: stored default or text)",
    )(f)
    f = click.option("-v", "--verbose", is_flag=True, default=False, help="Show protocol details")(f)
    return f


def plugin_options(f):
    f = click.option("--critical", type=float, default=None, help="Critical threshold on the absolute offset")(f)
    f = click.option("--warning", type=float, default=None, help="Warning threshold on the absolute offset")(f)
    f = click.option(
        "--plugin",
        is_flag=True,
        default=False,
        help="Nagios/Centreon plugin output (single status line). The verdict covers successful samples; "
        "UNKNOWN only when every sample failed",
    )(f)
    return f


def nts_options(f):
    f = click.option(
        "--nts-port", type=click.IntRange(1, 65535), default=NTS_KE_PORT, show_default=True, help="NTS-KE port"
    )(f)
    f = click.option(
        "--nts",
        is_flag=True,
        default=False,
        help="Use NTS-authenticated NTP (requires an NTS client backend; none ships by default)",
    )(f)
    return f


# ----------------------------------------------------------------------
# Argument resolution
# ----------------------------------------------------------------------


def _build_plan(count: int, interval: float, infinite: bool) -> SamplingPlan:
    try:
        return SamplingPlan(count=count, infinite=infinite, interval=interval)
    except UsageError as e:
        raise click.UsageError(str(e)) from e


def _build_output(
    settings: ClockScopeSettings,
    verbose: bool,
    output_format: Optional[str],
    json_output: bool,
    short: bool,
    pretty: bool,
    no_color: bool,
) -> OutputOptions:
    fmt = output_format or settings.format
    if json_output and short:
        fmt = "json-short"
    elif json_output:
        fmt = "json"
    elif short:
        fmt = "simple"

    if verbose and fmt in SHORT_FORMATS:
        click.echo(click.style("--verbose has no effect with short format", fg="yellow"), err=True)

    return OutputOptions(format=fmt, pretty=pretty, verbose=verbose, color=resolve_color(fmt, no_color))


def _build_plugin(plugin: bool, warning: Optional[float], critical: Optional[float]) -> PluginOptions:
    options = PluginOptions(enabled=plugin, warning=warning, critical=critical)
    try:
        options.validate()
    except UsageError as e:
        raise click.UsageError(str(e)) from e
    return options


def _build_query(
    settings: ClockScopeSettings, timeout: Optional[float], ipv6: bool, probe: ProbeOptions
) -> QueryOptions:
    return QueryOptions(
        timeout=timeout if timeout is not None else settings.timeout,
        ipv6=ipv6 or settings.ipv6_only,
        probe=probe,
    )


def _ntp_protocol(nts: bool) -> Protocol:
    return Protocol.NTS if nts else Protocol.NTP


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name=APP_NAME)
@click.option(
    "--log-level",
    default=None,
    help="Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL); default WARNING",
)
@click.pass_context
def cli(ctx, log_level):
    """Query NTP, NTS and PTP time servers."""
    try:
        settings = ClockScopeSettings()
    except ValidationError as e:
        raise click.UsageError(f"Invalid CLOCKSCOPE_* environment: {e}") from e

    try:
        set_log_level(log_level or settings.log_level)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--log-level") from e

    config = ConfigManager(settings.config_dir)
    try:
        settings = settings.with_stored_defaults(config.get_defaults())
    except ValidationError as e:
        raise click.UsageError(f"Invalid defaults in {config.get_config_path()}: {e}") from e
    ctx.obj = AppContext(settings=settings, config=config)


@cli.command()
@click.argument("target")
@probe_options
@output_options
@plugin_options
@nts_options
@click.pass_obj
def ntp(
    app: AppContext,
    target,
    count,
    interval,
    timeout,
    infinite,
    ipv6,
    verbose,
    output_format,
    json_output,
    short,
    pretty,
    no_color,
    plugin,
    warning,
    critical,
    nts,
    nts_port,
):
    """Query one NTP (or NTS) server."""
    plan = _build_plan(count, interval, infinite)
    plugin_opts = _build_plugin(plugin, warning, critical)
    output = _build_output(app.settings, verbose, output_format, json_output, short, pretty, no_color)
    probe = ProbeOptions(protocol=_ntp_protocol(nts), nts_port=nts_port, verbose=verbose)
    query = _build_query(app.settings, timeout, ipv6, probe)

    runner = CommandRunner()
    code = runner.run(lambda: runner.run_single(target, plan, query, output, plugin_opts), plan)
    sys.exit(code)


@cli.command()
@click.argument("targets", nargs=-1, required=True)
@probe_options
@output_options
@nts_options
@click.option("--plugin", is_flag=True, default=False, hidden=True)
@click.pass_obj
def compare(
    app: AppContext,
    targets,
    count,
    interval,
    timeout,
    infinite,
    ipv6,
    verbose,
    output_format,
    json_output,
    short,
    pretty,
    no_color,
    nts,
    nts_port,
    plugin,
):
    """Query several servers concurrently and compare their offsets."""
    if plugin:
        raise click.UsageError("--plugin cannot be used with compare")
    if len(targets) < 2:
        raise click.UsageError("compare needs at least two targets")

    plan = _build_plan(count, interval, infinite)
    output = _build_output(app.settings, verbose, output_format, json_output, short, pretty, no_color)
    probe = ProbeOptions(protocol=_ntp_protocol(nts), nts_port=nts_port, verbose=verbose)
    query = _build_query(app.settings, timeout, ipv6, probe)

    runner = CommandRunner()
    code = runner.run(lambda: runner.run_compare(list(targets), plan, query, output), plan)
    sys.exit(code)


@cli.command()
@click.argument("target")
@probe_options
@output_options
@plugin_options
@click.option("--domain", type=click.IntRange(0, 255), default=PTP_DEFAULT_DOMAIN, show_default=True)
@click.option("--event-port", type=click.IntRange(1, 65535), default=PTP_EVENT_PORT, show_default=True)
@click.option("--general-port", type=click.IntRange(1, 65535), default=PTP_GENERAL_PORT, show_default=True)
@click.option("--hw-timestamp", is_flag=True, default=False, help="Request hardware timestamping")
@click.option("--nts", is_flag=True, default=False, hidden=True)
@click.pass_obj
def ptp(
    app: AppContext,
    target,
    count,
    interval,
    timeout,
    infinite,
    ipv6,
    verbose,
    output_format,
    json_output,
    short,
    pretty,
    no_color,
    plugin,
    warning,
    critical,
    domain,
    event_port,
    general_port,
    hw_timestamp,
    nts,
):
    """Query a PTP grandmaster (simulated exchange). Plugin thresholds are in nanoseconds."""
    if nts:
        raise click.UsageError("--nts cannot be combined with ptp")

    plan = _build_plan(count, interval, infinite)
    plugin_opts = _build_plugin(plugin, warning, critical)
    output = _build_output(app.settings, verbose, output_format, json_output, short, pretty, no_color)
    probe = ProbeOptions(
        protocol=Protocol.PTP,
        ptp_domain=domain,
        ptp_event_port=event_port,
        ptp_general_port=general_port,
        ptp_hw_timestamp=hw_timestamp,
        verbose=verbose,
    )
    query = _build_query(app.settings, timeout, ipv6, probe)

    runner = CommandRunner()
    code = runner.run(lambda: runner.run_single(target, plan, query, output, plugin_opts), plan)
    sys.exit(code)


@cli.command()
@click.argument("target")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None)
@click.option("-6", "--ipv6", is_flag=True, default=False)
@click.option("--no-color", is_flag=True, default=False)
@nts_options
@click.pass_obj
def diag(app: AppContext, target, timeout, ipv6, no_color, nts, nts_port):
    """Single verbose probe with every diagnostic field."""
    plan = SamplingPlan()
    output = OutputOptions(format="text", verbose=True, color=resolve_color("text", no_color))
    probe = ProbeOptions(protocol=_ntp_protocol(nts), nts_port=nts_port, verbose=True)
    query = _build_query(app.settings, timeout, ipv6, probe)

    runner = CommandRunner()
    code = runner.run(lambda: runner.run_single(target, plan, query, output), plan)
    sys.exit(code)


# ----------------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------------


def _display(value) -> str:
    if value is None:
        return "<unset>"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float):
        return f"{value:.3f}"
    return str(value)


@cli.group()
def config():
    """Show or change stored defaults."""


@config.command("path")
@click.pass_obj
def config_path(app: AppContext):
    """Print the config file location."""
    click.echo(str(app.config.get_config_path()))


@config.command("list")
@click.pass_obj
def config_list(app: AppContext):
    defaults = app.config.get_defaults()
    for key in CONFIG_KEYS:
        click.echo(f"{key} = {_display(defaults.get(key))}")


@config.command("get")
@click.argument("key", type=click.Choice(CONFIG_KEYS))
@click.pass_obj
def config_get(app: AppContext, key):
    click.echo(_display(app.config.get_default(key)))


@config.command("set")
@click.argument("key", type=click.Choice(CONFIG_KEYS))
@click.argument("value")
@click.pass_obj
def config_set(app: AppContext, key, value):
    try:
        app.config.set_default(key, value)
    except (ConfigError, IOError) as e:
        raise click.ClickException(str(e)) from e


@config.command("clear")
@click.argument("key", type=click.Choice(CONFIG_KEYS))
@click.pass_obj
def config_clear(app: AppContext, key):
    try:
        app.config.clear_default(key)
    except IOError as e:
        raise click.ClickException(str(e)) from e


# ----------------------------------------------------------------------
# Presets
# ----------------------------------------------------------------------


@cli.group()
def preset():
    """Manage named argument presets."""


@preset.command("list")
@click.pass_obj
def preset_list(app: AppContext):
    presets = app.config.get_presets()
    if not presets:
        click.echo("(no presets)")
        return
    for name, args in presets.items():
        click.echo(f"{name}: {' '.join(args)}")


@preset.command("add", context_settings={"ignore_unknown_options": True})
@click.argument("name")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_obj
def preset_add(app: AppContext, name, args):
    """Store ARGS under NAME, e.g. `preset add office -- compare ntp1 ntp2 -c 5`."""
    try:
        app.config.add_preset(name, list(args))
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Preset '{name}' stored")


@preset.command("remove")
@click.argument("name")
@click.pass_obj
def preset_remove(app: AppContext, name):
    if not app.config.remove_preset(name):
        raise click.ClickException(f"Preset '{name}' not found")
    click.echo(f"Removed preset '{name}'")


@preset.command("show")
@click.argument("name")
@click.pass_obj
def preset_show(app: AppContext, name):
    args = app.config.get_preset(name)
    if args is None:
        raise click.ClickException(f"Preset '{name}' not found")
    click.echo(" ".join(args))


@preset.command("run")
@click.argument("name")
@click.pass_obj
def preset_run(app: AppContext, name):
    """Run clockscope with the arguments stored under NAME."""
    args = app.config.get_preset(name)
    if args is None:
        raise click.ClickException(f"Preset '{name}' not found")
    if not args:
        raise click.ClickException("Preset is empty")

    CLOCKSCOPE_LOGGER.debug(f"Running preset '{name}': {' '.join(args)}")
    result = subprocess.run([sys.executable, "-m", "clockscope", *args])
    sys.exit(result.returncode)


if __name__ == "__main__":
    cli()
