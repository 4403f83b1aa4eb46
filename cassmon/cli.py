#!/usr/bin/env python3

import logging
import math
import os
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from cassmon.config_manager import VALID_LOG_LEVELS, Config, ConfigManager
from cassmon.connection import JolokiaConnection
from cassmon.exceptions import CassMonError, ConnectionFailedError
from cassmon.formatting import (
    cpu_time_ms,
    format_bytes,
    format_value,
    mean_latency_ms,
    summarize_histogram,
    summarize_timer,
)
from cassmon.metadata import APP_NAME, DESCRIPTION, VERSION
from cassmon.metrics import CATALOG, Histogram, MetricReader, Timer

app = typer.Typer(name=APP_NAME, help=DESCRIPTION, add_completion=False, no_args_is_help=True)
console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(APP_NAME)


def setup_logging(log_level: str = "WARNING"):
    """Setup logging with Rich handler for colored output on stderr"""
    numeric_level = getattr(logging, log_level.upper())

    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)]
    )

    logger.setLevel(numeric_level)
    return logger


def version_callback(value: bool):
    if value:
        typer.echo(f"{APP_NAME} v{VERSION}")
        raise typer.Exit()


def bad_use(e: Exception, hint: bool = True):
    typer.secho(f"{APP_NAME}: {e}", err=True, fg=typer.colors.RED)
    if hint:
        typer.echo(f"See '{APP_NAME} --help' or '{APP_NAME} <command> --help'.", err=True)


def report_error(e: Exception):
    typer.secho(f"error: {e}", err=True, fg=typer.colors.RED)
    typer.echo("-- StackTrace --", err=True)
    typer.echo(traceback.format_exc(), err=True)


@dataclass
class CliState:
    """Global options, resolved into a Config once a command runs"""
    config_file: Optional[Path] = None
    overrides: dict = field(default_factory=dict)

    def early_log_level(self) -> str:
        """Level to log at while the configuration itself is being loaded"""
        level = self.overrides.get("logging", {}).get("level") or os.environ.get("CASSMON_LOG_LEVEL") or "WARNING"
        return level.upper() if level.upper() in VALID_LOG_LEVELS else "WARNING"

    def load(self) -> Config:
        return ConfigManager(str(self.config_file) if self.config_file else None).load_config(self.overrides)


def open_connection(config: Config) -> JolokiaConnection:
    conn = config.connection
    return JolokiaConnection(
        conn.host,
        conn.port,
        username=conn.username,
        password=conn.password,
        ssl=conn.ssl,
        timeout=conn.timeout,
    )


def run_command(ctx: typer.Context, execute: Callable[[MetricReader], None]):
    """
    Open a session, run one command's reads against it and close it.

    Exits 1 on connection failures and other cassmon errors, 2 on anything
    unexpected.
    """
    state: CliState = ctx.obj or CliState()
    try:
        setup_logging(state.early_log_level())
        config = state.load()
        setup_logging(config.logging.level)

        connection = open_connection(config)
        try:
            execute(MetricReader(connection))
        finally:
            connection.close()

        if connection.failed:
            raise CassMonError(f"{APP_NAME} failed, check server logs")
    except ConnectionFailedError as e:
        bad_use(e, hint=False)
        raise typer.Exit(1)
    except CassMonError as e:
        bad_use(e)
        raise typer.Exit(1)
    except typer.Exit:
        raise
    except Exception as e:
        report_error(e)
        raise typer.Exit(2)


def require_selection(*flags):
    if not any(flags):
        bad_use(CassMonError("No metric selected, pass at least one metric flag"))
        raise typer.Exit(1)


def format_ms(value: float) -> str:
    return "NaN" if math.isnan(value) else f"{value:.3f}"


def render(value) -> str:
    if isinstance(value, Timer):
        return summarize_timer(value)
    if isinstance(value, Histogram):
        return summarize_histogram(value)
    return format_value(value)


@app.callback()
def main(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "-h", "--host", help="Node hostname or ip address (default: 127.0.0.1)"),
    port: Optional[int] = typer.Option(None, "-p", "--port", help="Remote management agent port number (default: 8778)"),
    username: Optional[str] = typer.Option(None, "-u", "--username", help="Remote management agent username"),
    password: Optional[str] = typer.Option(None, "-pw", "--password", help="Remote management agent password"),
    ssl: Optional[bool] = typer.Option(None, "--ssl/--no-ssl", help="Connect to the agent over HTTPS"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Request timeout in seconds (default: 120)"),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML configuration file"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Set logging level: DEBUG, INFO, WARNING (default), ERROR, CRITICAL", case_sensitive=False),
    version: bool = typer.Option(None, "--version", callback=version_callback, is_eager=True),
):
    """Get metrics of Cassandra Process Remotely."""
    ctx.obj = CliState(
        config_file=config,
        overrides={
            "connection": {
                "host": host,
                "port": port,
                "username": username,
                "password": password,
                "ssl": ssl,
                "timeout": timeout,
            },
            "logging": {"level": log_level},
        },
    )


@app.command("tablestats")
def table_stats(
    ctx: typer.Context,
    keyspace: str = typer.Option("", "-ks", "--keyspace", help="Keyspace"),
    table: str = typer.Option("", "-t", "--table", help="Table"),
    disk_used: bool = typer.Option(False, "-d", "--diskused", help="Live Disk Space Used"),
    read_latency: bool = typer.Option(False, "-r", "--readlatency", help="Read Latency"),
    write_latency: bool = typer.Option(False, "-w", "--writelatency", help="Write Latency"),
    sstable_count: bool = typer.Option(False, "-s", "--sstablecount", help="Sstable Count"),
    metric: Optional[List[str]] = typer.Option(None, "-m", "--metric", help="Any table metric by name, repeatable"),
):
    """Print information about the table in cassandra"""
    metric = metric or []
    require_selection(disk_used, read_latency, write_latency, sstable_count, metric)
    if not keyspace or not table:
        bad_use(CassMonError("tablestats requires --keyspace and --table"))
        raise typer.Exit(1)

    def execute(reader: MetricReader):
        if disk_used:
            used = reader.get_column_family_metric(keyspace, table, "LiveDiskSpaceUsed")
            typer.echo(f"Disk Usage: {format_bytes(used, True)}")

        for enabled, label, timer_name, total_name in (
            (read_latency, "Read Latency", "ReadLatency", "ReadTotalLatency"),
            (write_latency, "Write Latency", "WriteLatency", "WriteTotalLatency"),
        ):
            if enabled:
                timer = reader.get_column_family_metric(keyspace, table, timer_name)
                total = reader.get_column_family_metric(keyspace, table, total_name)
                typer.echo(f"{label}: {format_ms(mean_latency_ms(total, timer.count))} ms")

        if sstable_count:
            typer.echo(f"SSTABLE Count: {reader.get_column_family_metric(keyspace, table, 'LiveSSTableCount')}")

        for name in metric:
            typer.echo(f"{name}: {render(reader.get_column_family_metric(keyspace, table, name))}")

    run_command(ctx, execute)


@app.command("clients")
def clients(
    ctx: typer.Context,
    native_clients: bool = typer.Option(False, "-n", "--native", help="Native Client Connections"),
    thrift_clients: bool = typer.Option(False, "-t", "--thrift", help="Thrift Client Connections"),
    all_clients: bool = typer.Option(False, "-a", "--all", help="All Client Connections"),
):
    """Prints information about number of clients connected to cassandra"""
    require_selection(native_clients, thrift_clients, all_clients)

    def execute(reader: MetricReader):
        if native_clients or all_clients:
            typer.echo(f"Native Clients: {reader.get_connected_clients('connectedNativeClients')}")
        if thrift_clients or all_clients:
            typer.echo(f"Thrift Clients: {reader.get_connected_clients('connectedThriftClients')}")

    run_command(ctx, execute)


@app.command("compactionstats")
def compaction_stats(
    ctx: typer.Context,
    bytes_compacted: bool = typer.Option(False, "-b", "--bytescompacted", help="Bytes compacted"),
    completed_tasks: bool = typer.Option(False, "-c", "--completedtasks", help="Completed compaction tasks"),
    pending_tasks: bool = typer.Option(False, "-p", "--pendingtasks", help="Pending compaction Tasks"),
    total_completed: bool = typer.Option(False, "-t", "--totalcompactionscompleted", help="Total Compactions Completed"),
):
    """Prints information about the compactions"""
    selected = [
        (bytes_compacted, "Bytes Compacted", "BytesCompacted"),
        (completed_tasks, "Completed Tasks", "CompletedTasks"),
        (pending_tasks, "Pending Tasks", "PendingTasks"),
        (total_completed, "Total Compactions Completed", "TotalCompactionsCompleted"),
    ]
    require_selection(*(enabled for enabled, _, _ in selected))

    def execute(reader: MetricReader):
        for enabled, label, name in selected:
            if enabled:
                typer.echo(f"{label}: {reader.get_compaction_metric(name)}")

    run_command(ctx, execute)


@app.command("storage")
def storage(
    ctx: typer.Context,
    load: bool = typer.Option(False, "-l", "--load", help="Size of on disk data"),
    exceptions: bool = typer.Option(False, "-e", "--exceptions", help="Internal exceptions count"),
    total_hints: bool = typer.Option(False, "-t", "--totalhints", help="Hints written"),
    hints_in_progress: bool = typer.Option(False, "-i", "--hintsinprogress", help="Hints being written"),
):
    """Prints storage counters of the node"""
    require_selection(load, exceptions, total_hints, hints_in_progress)

    def execute(reader: MetricReader):
        if load:
            typer.echo(f"Load: {format_bytes(reader.get_storage_metric('Load'), True)}")
        if exceptions:
            typer.echo(f"Exceptions: {reader.get_storage_metric('Exceptions')}")
        if total_hints:
            typer.echo(f"Total Hints: {reader.get_storage_metric('TotalHints')}")
        if hints_in_progress:
            typer.echo(f"Hints In Progress: {reader.get_storage_metric('TotalHintsInProgress')}")

    run_command(ctx, execute)


@app.command("os")
def os_metrics(
    ctx: typer.Context,
    cpuload: bool = typer.Option(False, "-c", "--cpuload", help="Get CPU load"),
    sysload: bool = typer.Option(False, "-s", "--sysload", help="Get SYSTEM load"),
    processors: bool = typer.Option(False, "-p", "--processors", help="Get number of processors"),
    arch: bool = typer.Option(False, "-a", "--arch", help="Get architecture of OS"),
    sysavgload: bool = typer.Option(False, "-l", "--sysavgload", help="System Average Load"),
    os_version: bool = typer.Option(False, "-v", "--version", help="System version"),
    name: bool = typer.Option(False, "-n", "--name", help="OS name"),
    processcputime: bool = typer.Option(False, "-t", "--processcputime", help="Process cpu time"),
    memory: bool = typer.Option(False, "-m", "--memory", help="Free memory/Total memory"),
    filedescriptor: bool = typer.Option(False, "-f", "--filedescriptor", help="Open/Max File descriptors"),
):
    """Prints information about Operating System metrics"""
    simple = [
        (cpuload, "Cpu Load", "ProcessCpuLoad"),
        (sysload, "System Load", "SystemCpuLoad"),
        (processors, "Processors", "AvailableProcessors"),
        (arch, "OS Architecture", "Arch"),
        (sysavgload, "System Avg. Load", "SystemLoadAverage"),
        (os_version, "OS Version", "Version"),
        (name, "OS Name", "Name"),
    ]
    require_selection(*(enabled for enabled, _, _ in simple), processcputime, memory, filedescriptor)

    def execute(reader: MetricReader):
        read = reader.get_operating_system_metric

        for enabled, label, attribute in simple:
            if enabled:
                typer.echo(f"{label}: {format_value(read(attribute))}")

        if processcputime:
            cpu_time = cpu_time_ms(read("ProcessCpuTime"))
            typer.echo(f"Process cpu time: {'NaN' if math.isnan(cpu_time) else cpu_time} ms")

        if memory:
            typer.echo(
                f"System memory(Free/Total): {format_bytes(read('FreePhysicalMemorySize'))}"
                f"/{format_bytes(read('TotalPhysicalMemorySize'))}"
            )
            typer.echo(
                f"Swap Memory(Free/Total): {format_bytes(read('FreeSwapSpaceSize'))}"
                f"/{format_bytes(read('TotalSwapSpaceSize'))}"
            )

        if filedescriptor:
            typer.echo(
                f"File Descriptors(Open/Max): {format_value(read('OpenFileDescriptorCount'))}"
                f"/{format_value(read('MaxFileDescriptorCount'))}"
            )

    run_command(ctx, execute)


@app.command("metrics")
def list_metrics(
    category: Optional[str] = typer.Argument(None, help=f"One of: {', '.join(CATALOG)}"),
):
    """Lists the metric names cassmon knows and how each one is read"""
    if category is not None and category not in CATALOG:
        bad_use(CassMonError(f"Unknown category '{category}', expected one of: {', '.join(CATALOG)}"))
        raise typer.Exit(1)

    table = Table(title="Metric Catalog")
    table.add_column("Category", style="cyan", no_wrap=True)
    table.add_column("Metric", style="magenta", no_wrap=True)
    table.add_column("Kind", no_wrap=True)

    for cat, metrics in CATALOG.items():
        if category is not None and cat != category:
            continue
        for metric_name, kind in sorted(metrics.items()):
            table.add_row(cat, metric_name, kind.value)

    console.print(table)


if __name__ == "__main__":
    app()
