# methylset/config.py
"""
Centralized configuration for the methylset store.
This module provides a single source of truth for the on-disk format constants.
"""

import numpy as np

# Catalog (index metadata) file written next to the matrix store
CATALOG_SUFFIX = ".catalog.json"
CATALOG_FORMAT = "methylset.catalog"
CATALOG_VERSION = 1

# Cell encoding: byte width -> little-endian IEEE float dtype
CELL_DTYPES = {
    4: np.dtype('<f4'),
    8: np.dtype('<f8'),
}
DEFAULT_CELL_BYTE_WIDTH = 8

# Value held by cells no fill has written yet
SENTINEL = np.nan

# Number of columns written per step when initialising a new store
ALLOCATION_CHUNK_COLUMNS = 64

# Number of samples filled per step by bulk ingestion
INGEST_CHUNK_SAMPLES = 16

# Individual timings kept by the execution profiler
PROFILE_MAX_ENTRIES = 10000
