"""plinkstats command-line interface.

Typer-based CLI with one subcommand per statistic. Every command reads a
PLINK 1 fileset (-bfile), optionally restricted by --keep and --region,
and writes {outdir}/{prefix}.{ext} plus a {prefix}.log.txt run log.
"""

import sys
import time
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Annotated

import typer

import plinkstats
from plinkstats.core import OutputConfig, ScanConfig
from plinkstats.core.errors import PlinkStatsError
from plinkstats.io import (
    IncrementalTableWriter,
    open_bfile,
    read_keep_file,
    read_weights_file,
)
from plinkstats.query import (
    plink_freq,
    plink_hardy,
    plink_ld,
    plink_missing,
    plink_score,
)
from plinkstats.stats.missing import MISSING_MODES
from plinkstats.utils import setup_logging, write_run_log

app = typer.Typer(
    name="plinkstats",
    help="plinkstats: summary statistics and polygenic scores for PLINK data.",
    add_completion=False,
)

# Store global options set by callback
_global_config: OutputConfig | None = None
_scan_config: ScanConfig | None = None

BfileOption = Annotated[Path, typer.Option("-bfile", help="PLINK binary file prefix")]
PvarOption = Annotated[
    Path | None, typer.Option("--pvar", help="Variant file used instead of .bim")
]
PsamOption = Annotated[
    Path | None, typer.Option("--psam", help="Sample file used instead of .fam")
]
KeepOption = Annotated[
    Path | None, typer.Option("--keep", help="File of sample IIDs to keep")
]
RegionOption = Annotated[
    str | None, typer.Option("--region", help="Region filter chrom:start-end")
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"plinkstats version {plinkstats.__version__}")
        raise typer.Exit()


@app.callback()
def main(
    outdir: Annotated[
        Path,
        typer.Option("-outdir", help="Output directory"),
    ] = Path("output"),
    output: Annotated[
        str,
        typer.Option("-o", help="Output file prefix"),
    ] = "result",
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Verbose output"),
    ] = False,
    threads: Annotated[
        int | None,
        typer.Option("--threads", min=1, help="Maximum worker threads"),
    ] = None,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """plinkstats: parallel PLINK summary statistics."""
    global _global_config, _scan_config
    _global_config = OutputConfig(outdir=outdir, prefix=output, verbose=verbose)
    _scan_config = ScanConfig(threads=threads, show_progress=True)
    setup_logging(verbose=verbose)


def _run_command(
    extension: str,
    bfile: Path,
    pvar: Path | None,
    psam: Path | None,
    keep: Path | None,
    region: str | None,
    query: Callable[..., Iterator],
    params: dict,
    counts: bool = False,
) -> None:
    """Open the data, stream query rows to the result file, write the run log."""
    start_time = time.perf_counter()

    global _global_config, _scan_config
    if _global_config is None:
        _global_config = OutputConfig()
    if _scan_config is None:
        _scan_config = ScanConfig()
    _global_config.ensure_outdir()
    command_line = " ".join(sys.argv)

    typer.echo(f"Loading PLINK data from {bfile}...")
    try:
        dataset = open_bfile(
            bfile, pvar=pvar, psam=psam, block_size=_scan_config.block_size
        )
        samples = read_keep_file(keep) if keep is not None else None
        rows = query(dataset, samples=samples, region=region, config=_scan_config)

        result_path = _global_config.result_path(extension)
        scan_start = time.perf_counter()
        with IncrementalTableWriter(result_path, extension, counts=counts) as writer:
            for row in rows:
                writer.write(row)
        scan_time = time.perf_counter() - scan_start
    except (PlinkStatsError, FileNotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None

    typer.echo(f"Wrote {writer.count} rows to {result_path}")

    elapsed = time.perf_counter() - start_time
    sections = {
        "Input": {
            "bfile": str(bfile),
            "n_samples": dataset.raw_sample_ct,
            "n_variants": dataset.raw_variant_ct,
            "keep": str(keep) if keep is not None else "all",
            "region": region or "all",
        },
        "Options": params,
        "Output": {"rows_written": writer.count, "output_file": str(result_path)},
    }
    timing = {"total": elapsed, "scan": scan_time}
    log_path = write_run_log(_global_config, sections, timing, command_line)
    typer.echo(f"Log written to {log_path}")


@app.command("freq")
def freq_command(
    bfile: BfileOption,
    pvar: PvarOption = None,
    psam: PsamOption = None,
    keep: KeepOption = None,
    region: RegionOption = None,
    counts: Annotated[
        bool, typer.Option("--counts", help="Add genotype class count columns")
    ] = False,
) -> None:
    """Compute ALT allele frequencies (.afreq)."""
    _run_command(
        "afreq",
        bfile,
        pvar,
        psam,
        keep,
        region,
        lambda ds, **kw: plink_freq(ds, counts=counts, **kw),
        {"counts": counts},
        counts=counts,
    )


@app.command("hardy")
def hardy_command(
    bfile: BfileOption,
    pvar: PvarOption = None,
    psam: PsamOption = None,
    keep: KeepOption = None,
    region: RegionOption = None,
    midp: Annotated[
        bool, typer.Option("--midp", help="Report mid-p adjusted p-values")
    ] = False,
) -> None:
    """Run the Hardy-Weinberg exact test (.hardy)."""
    _run_command(
        "hardy",
        bfile,
        pvar,
        psam,
        keep,
        region,
        lambda ds, **kw: plink_hardy(ds, midp=midp, **kw),
        {"midp": midp},
    )


@app.command("ld")
def ld_command(
    bfile: BfileOption,
    pvar: PvarOption = None,
    psam: PsamOption = None,
    keep: KeepOption = None,
    region: RegionOption = None,
    variant1: Annotated[
        str | None, typer.Option("--variant1", help="First variant ID (pairwise)")
    ] = None,
    variant2: Annotated[
        str | None, typer.Option("--variant2", help="Second variant ID (pairwise)")
    ] = None,
    window_kb: Annotated[
        int, typer.Option("--window-kb", help="Window size in kilobases")
    ] = 1000,
    r2_threshold: Annotated[
        float, typer.Option("--r2-threshold", help="Minimum r2 to report")
    ] = 0.2,
    inter_chr: Annotated[
        bool, typer.Option("--inter-chr", help="Also report cross-chromosome pairs")
    ] = False,
) -> None:
    """Compute linkage disequilibrium r2 and D' (.vcor)."""
    _run_command(
        "vcor",
        bfile,
        pvar,
        psam,
        keep,
        region,
        lambda ds, **kw: plink_ld(
            ds,
            variant1=variant1,
            variant2=variant2,
            window_kb=window_kb,
            r2_threshold=r2_threshold,
            inter_chr=inter_chr,
            **kw,
        ),
        {
            "variant1": variant1 or "NA",
            "variant2": variant2 or "NA",
            "window_kb": window_kb,
            "r2_threshold": r2_threshold,
            "inter_chr": inter_chr,
        },
    )


@app.command("missing")
def missing_command(
    bfile: BfileOption,
    pvar: PvarOption = None,
    psam: PsamOption = None,
    keep: KeepOption = None,
    region: RegionOption = None,
    mode: Annotated[
        str,
        typer.Option("--mode", help=f"Missingness orientation {MISSING_MODES}"),
    ] = "variant",
) -> None:
    """Compute missing-call rates per variant (.vmiss) or sample (.smiss)."""
    extension = "smiss" if mode == "sample" else "vmiss"
    _run_command(
        extension,
        bfile,
        pvar,
        psam,
        keep,
        region,
        lambda ds, **kw: plink_missing(ds, mode=mode, **kw),
        {"mode": mode},
    )


@app.command("score")
def score_command(
    bfile: BfileOption,
    weights: Annotated[
        Path, typer.Option("--weights", help="Weights file: ID ALLELE WEIGHT")
    ],
    pvar: PvarOption = None,
    psam: PsamOption = None,
    keep: KeepOption = None,
    region: RegionOption = None,
    center: Annotated[
        bool, typer.Option("--center", help="Variance-standardise dosages")
    ] = False,
    no_mean_imputation: Annotated[
        bool,
        typer.Option("--no-mean-imputation", help="Skip missing calls"),
    ] = False,
) -> None:
    """Compute per-sample polygenic scores (.sscore)."""
    try:
        entries = read_weights_file(weights)
    except (PlinkStatsError, FileNotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None

    _run_command(
        "sscore",
        bfile,
        pvar,
        psam,
        keep,
        region,
        lambda ds, **kw: plink_score(
            ds,
            entries,
            center=center,
            no_mean_imputation=no_mean_imputation,
            **kw,
        ),
        {
            "weights_file": str(weights),
            "n_weights": len(entries),
            "center": center,
            "no_mean_imputation": no_mean_imputation,
        },
    )
