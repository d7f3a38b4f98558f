"""I/O modules for plinkstats.

This package contains modules for reading genotype data and metadata and
writing result tables:
- engine: Genotype decoding engine interface and in-memory implementation
- plink: PLINK binary format (.bed/.bim/.fam) via bed-reader
- metadata: Variant/sample metadata and .pvar/.psam loaders
- dataset: Bind phase pairing genotypes with metadata
- id_list: Keep-list and score weights files
- output: Tab-separated result table writers
"""

from plinkstats.io.dataset import GenotypeDataset, bind_dataset, open_bfile
from plinkstats.io.engine import (
    MISSING_GENOTYPE,
    ArrayGenotypeSource,
    GenotypeCounts,
    GenotypeReader,
    GenotypeSource,
)
from plinkstats.io.id_list import WeightEntry, read_keep_file, read_weights_file
from plinkstats.io.metadata import (
    SampleMetadata,
    VariantMetadata,
    load_psam,
    load_pvar,
)
from plinkstats.io.output import IncrementalTableWriter, write_table
from plinkstats.io.plink import BedGenotypeSource, load_plink_metadata

__all__ = [
    "GenotypeDataset",
    "bind_dataset",
    "open_bfile",
    "MISSING_GENOTYPE",
    "ArrayGenotypeSource",
    "GenotypeCounts",
    "GenotypeReader",
    "GenotypeSource",
    "WeightEntry",
    "read_keep_file",
    "read_weights_file",
    "SampleMetadata",
    "VariantMetadata",
    "load_psam",
    "load_pvar",
    "IncrementalTableWriter",
    "write_table",
    "BedGenotypeSource",
    "load_plink_metadata",
]
