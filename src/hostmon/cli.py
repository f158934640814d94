"""CLI commands for hostmon."""

import time
from pathlib import Path

import click

from hostmon.config import Config


def _load_config(path: Path | None) -> Config:
    try:
        return Config.load(path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.config/hostmon/config.toml)",
)
@click.version_option(package_name="hostmon")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None) -> None:
    """Local host telemetry: CPU, memory, processes, network and sensors."""
    ctx.ensure_object(dict)
    config = _load_config(config_path)
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path or config.config_path

    if ctx.invoked_subcommand is None:
        ctx.invoke(tui)


@main.command()
@click.pass_context
def tui(ctx: click.Context) -> None:
    """Launch interactive dashboard."""
    from hostmon.app import run_app
    from hostmon.logging import configure

    config = ctx.obj["config"]
    configure(config)
    run_app(config=config)


@main.command()
@click.option("--interval", "-i", type=float, default=None, help="Seconds between refreshes")
@click.option("--count", "-n", type=int, default=0, help="Stop after N reports (0 = forever)")
@click.option("--top", type=int, default=None, help="Number of top CPU processes to list")
@click.option("--no-clear", is_flag=True, help="Append reports instead of redrawing the screen")
@click.pass_context
def console(
    ctx: click.Context,
    interval: float | None,
    count: int,
    top: int | None,
    no_clear: bool,
) -> None:
    """Print a full-screen text report every interval."""
    from hostmon import logging as console_log
    from hostmon.monitor import SystemMonitor
    from hostmon.report import render_report

    config = ctx.obj["config"]
    console_log.configure(config)
    interval = max(0.1, interval or config.sampling.interval)
    top = config.display.top_processes if top is None else top

    monitor = SystemMonitor(config=config)
    console_log.monitor_started(type(monitor.source).__name__, interval)
    reports = 0
    try:
        while True:
            updated = monitor.update() is not None
            with monitor.read() as snapshot:
                report = render_report(snapshot, top=top)
            if not no_clear:
                click.clear()
            click.echo(report)
            if not updated:
                console_log.update_failed(str(config.log_path))
            reports += 1
            if count and reports >= count:
                break
            time.sleep(interval)
    except KeyboardInterrupt:
        console_log.monitor_stopped(reports)


@main.command()
@click.option("--interval", "-i", type=float, default=1.0, help="Seconds between the two samples")
@click.option("--top", type=int, default=None, help="Number of top CPU processes to list")
@click.pass_context
def snapshot(ctx: click.Context, interval: float, top: int | None) -> None:
    """Sample twice and print one report with real rates."""
    from hostmon import logging as console_log
    from hostmon.monitor import SystemMonitor
    from hostmon.report import render_report

    config = ctx.obj["config"]
    console_log.configure(config)
    top = config.display.top_processes if top is None else top

    monitor = SystemMonitor(config=config)
    monitor.update()
    time.sleep(max(0.1, interval))
    if monitor.update() is None:
        console_log.update_failed(str(config.log_path))
    click.echo(render_report(monitor.snapshot, top=top))


@main.group("config")
def config_group() -> None:
    """Inspect or create the config file."""


@config_group.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.pass_context
def config_init(ctx: click.Context, force: bool) -> None:
    """Write the default config file."""
    from hostmon import logging as console_log

    path: Path = ctx.obj["config_path"]
    if path.exists() and not force:
        console_log.config_exists(str(path))
        return
    Config().save(path)
    console_log.config_created(str(path))


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration as TOML."""
    click.echo(ctx.obj["config"].to_toml())


@config_group.command("path")
@click.pass_context
def config_path_cmd(ctx: click.Context) -> None:
    """Print the config file location."""
    click.echo(str(ctx.obj["config_path"]))
