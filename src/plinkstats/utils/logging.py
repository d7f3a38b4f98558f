"""Console/JSON logging setup, per-command run logs and RSS readings.

Every CLI command writes ``{outdir}/{prefix}.log.txt`` beside its result
table. The run log uses ``##`` prefixed lines grouped into sections so it
reads the same way for all five statistics.
"""

import sys
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path

import psutil
from loguru import logger

import plinkstats

CONSOLE_FORMAT = "{time:HH:mm:ss} | <level>{level: <8}</level> | {message}"


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Replace the loguru handlers with the plinkstats console and file sinks.

    Args:
        verbose: Console at DEBUG instead of INFO, which shows per-worker
            scan detail.
        log_file: Also write every record at DEBUG to this path, one JSON
            object per line.
    """
    logger.remove()
    logger.add(
        sys.stdout,
        level="DEBUG" if verbose else "INFO",
        format=CONSOLE_FORMAT,
        colorize=True,
    )
    if log_file:
        logger.add(log_file, serialize=True, level="DEBUG")


def _format_seconds(value) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def write_run_log(
    output_config: "plinkstats.core.config.OutputConfig",
    sections: Mapping[str, Mapping[str, object]],
    timing: Mapping[str, float],
    command_line: str,
) -> Path:
    """Write the run log for one CLI command.

    Args:
        output_config: Supplies the output directory and log file name.
        sections: Ordered ``{section title: {key: value}}``, e.g. "Input"
            (fileset, sample and variant counts), "Options" (the statistic's
            arguments) and "Output" (rows written, result path).
        timing: Wall-clock seconds per phase, e.g. ``{"total": 1.2}``.
        command_line: The command line as typed.

    Returns:
        Path to the log file.

    Example output:
        ##
        ## plinkstats Version = 0.1.0
        ## Date = 2026-10-17T10:30:00
        ## Command Line Input = plinkstats hardy -bfile data --midp
        ##
        ## Input:
        ## bfile = data
        ## n_samples = 1940
        ##
        ## Options:
        ## midp = True
        ##
        ## Computation Time:
        ## total time = 1.23 seconds
        ##
    """
    output_config.ensure_outdir()
    log_path = output_config.log_path

    lines = [
        "##",
        f"## plinkstats Version = {plinkstats.__version__}",
        f"## Date = {datetime.now().isoformat(timespec='seconds')}",
        f"## Command Line Input = {command_line}",
        "##",
    ]
    for title, entries in sections.items():
        lines.append(f"## {title}:")
        lines.extend(f"## {key} = {value}" for key, value in entries.items())
        lines.append("##")
    lines.append("## Computation Time:")
    lines.extend(
        f"## {phase} time = {_format_seconds(seconds)} seconds"
        for phase, seconds in timing.items()
    )
    lines.append("##")

    log_path.write_text("\n".join(lines) + "\n")
    return log_path


def log_rss_memory(phase: str, checkpoint: str) -> float:
    """Log the resident set size at DEBUG, tagged with phase and checkpoint.

    The tags are attached with ``logger.bind`` so JSON log files can be
    filtered on them.

    Returns:
        RSS in GB.
    """
    rss_gb = psutil.Process().memory_info().rss / 1e9
    logger.bind(phase=phase, checkpoint=checkpoint).debug(
        f"RSS memory: {rss_gb:.2f}GB (phase={phase}, checkpoint={checkpoint})"
    )
    return rss_gb
