"""
methylset: an indexed out-of-core store for DNA-methylation beta values.

A store keeps a probes x samples matrix in a headerless column-major file
and its probe/sample catalog in a JSON file next to it.
"""

from .catalog import IndexMetadata
from .core import SliceResult, StoreHandle
from .errors import (
    AllocationError,
    CatalogCorruptError,
    CatalogError,
    CatalogNotFoundError,
    FileSetError,
    StoreReadError,
    StoreWriteError,
    UnknownPlatformError,
    UnknownProbeError,
    UnknownSampleError,
)
from .fileset import allocate, allocate_for_platform, describe, fill, open_store, read_columns, slice_cells
from .ingest import fill_from_file, fill_from_matrix, load_beta_matrix
from .layout import cell_offset, column_byte_range, store_nbytes
from .observability import configure_logging, get_profiler
from .platforms import Platform, ProbeReference

__version__ = "0.1.0"
