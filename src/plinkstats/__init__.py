"""plinkstats: parallel summary statistics over PLINK genotype data.

plinkstats computes allele frequencies, Hardy-Weinberg exact tests, linkage
disequilibrium, missing-call rates and polygenic scores from PLINK 1
filesets, with arbitrary sample subsets and region filters and a pool of
worker threads sharing each scan.

Example:
    >>> from plinkstats import plink_hardy
    >>> rows = list(plink_hardy("data/study", region="1:1-1000000"))
    >>> print(f"{len(rows)} variants tested")
"""

import sys
from importlib.metadata import version

from loguru import logger

__version__ = version("plinkstats")

# Configure loguru with sensible defaults on import
# Users can override by calling logger.remove()/add()
logger.remove()
logger.add(
    sys.stdout,
    level="INFO",
    format="{time:HH:mm:ss} | <level>{level: <8}</level> | {message}",
    colorize=True,
)

from plinkstats.io.dataset import (  # noqa: E402
    GenotypeDataset,
    bind_dataset,
    open_bfile,
)
from plinkstats.query import (  # noqa: E402
    plink_freq,
    plink_hardy,
    plink_ld,
    plink_missing,
    plink_score,
)

__all__ = [
    "GenotypeDataset",
    "bind_dataset",
    "open_bfile",
    "plink_freq",
    "plink_hardy",
    "plink_ld",
    "plink_missing",
    "plink_score",
    "__version__",
]
