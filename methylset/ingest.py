"""
Bulk loading of labelled beta matrices into a store.

Supports the formats beta matrices are usually exchanged in:
NumPy archives, HDF5 files and delimited text (CSV/TSV).
"""

import logging
import os
from typing import List, Optional, Sequence, Tuple

import h5py
import numpy as np

from .config import INGEST_CHUNK_SAMPLES
from .core import StoreHandle
from .fileset import fill
from .observability import get_profiler

logger = logging.getLogger(__name__)

MISSING_TOKENS = {"", "NA", "NaN", "nan", "NULL", "null"}


def _detect_format(input_path: str) -> str:
    ext = os.path.splitext(input_path)[1].lower()
    format_map = {
        ".npz": "npz",
        ".h5": "hdf5",
        ".hdf5": "hdf5",
        ".csv": "csv",
        ".tsv": "tsv",
        ".txt": "tsv",
    }
    if ext not in format_map:
        raise ValueError(f"Cannot infer beta matrix format from extension '{ext}'")
    return format_map[ext]


def _as_strings(values) -> List[str]:
    return [v.decode('utf-8') if isinstance(v, bytes) else str(v) for v in values]


def load_beta_matrix(
    input_path: str,
    input_format: str = "auto",
    dataset_name: str = "betas",
) -> Tuple[np.ndarray, List[str], List[str]]:
    """
    Load a labelled beta matrix (rows: probes, columns: samples).

    Args:
        input_path: Path to the input file
        input_format: "auto", "npz", "hdf5", "csv" or "tsv"
        dataset_name: Name of the value array for npz and HDF5 inputs; probe and
            sample labels are read from the `probes` and `samples` arrays

    Returns:
        Tuple of (betas, probe_ids, sample_ids)
    """
    if input_format == "auto":
        input_format = _detect_format(input_path)

    if input_format == "npz":
        with np.load(input_path, allow_pickle=False) as archive:
            betas = np.asarray(archive[dataset_name], dtype=np.float64)
            probes = _as_strings(archive["probes"])
            samples = _as_strings(archive["samples"])

    elif input_format == "hdf5":
        with h5py.File(input_path, 'r') as f:
            betas = np.asarray(f[dataset_name][()], dtype=np.float64)
            probes = _as_strings(f["probes"][()])
            samples = _as_strings(f["samples"][()])

    elif input_format in ["csv", "tsv"]:
        delimiter = ',' if input_format == "csv" else '\t'
        table = np.loadtxt(input_path, delimiter=delimiter, dtype=str, ndmin=2,
                           comments=None, quotechar='"', encoding='utf-8')
        samples = [s.strip() for s in table[0, 1:]]
        probes = [p.strip() for p in table[1:, 0]]
        cells = np.char.strip(table[1:, 1:])
        missing = np.isin(cells, list(MISSING_TOKENS))
        cells = np.where(missing, "nan", cells)
        betas = cells.astype(np.float64)

    else:
        raise ValueError(f"Unsupported format: {input_format}")

    if betas.shape != (len(probes), len(samples)):
        raise ValueError(
            f"beta matrix shape {betas.shape} does not match "
            f"{len(probes)} probes x {len(samples)} samples")

    logger.info("Loaded beta matrix %s: %d probes x %d samples (%s)",
                input_path, len(probes), len(samples), input_format)
    return betas, probes, samples


def fill_from_matrix(
    handle: StoreHandle,
    betas: np.ndarray,
    probe_ids: Sequence[str],
    sample_ids: Sequence[str],
    strict: bool = False,
    skip_unknown_samples: bool = False,
) -> List[str]:
    """
    Fill one store column per matrix column.

    NaN entries are not written, so those cells keep their current content.

    Args:
        handle: Target store
        betas: Array of shape (len(probe_ids), len(sample_ids))
        probe_ids: Row labels of `betas`
        sample_ids: Column labels of `betas`
        strict: Reject probe ids that are not part of the store
        skip_unknown_samples: Skip, instead of failing on, columns whose sample
            is not part of the store

    Returns:
        The sample ids that were written, in matrix order
    """
    betas = np.asarray(betas)
    if betas.shape != (len(probe_ids), len(sample_ids)):
        raise ValueError(
            f"beta matrix shape {betas.shape} does not match "
            f"{len(probe_ids)} probes x {len(sample_ids)} samples")

    written = []
    with get_profiler().profile("ingest.fill_from_matrix", samples=len(sample_ids)):
        for c_start in range(0, len(sample_ids), INGEST_CHUNK_SAMPLES):
            c_end = min(c_start + INGEST_CHUNK_SAMPLES, len(sample_ids))
            block = betas[:, c_start:c_end]
            for offset, sample_id in enumerate(sample_ids[c_start:c_end]):
                if skip_unknown_samples and not handle.has_sample(sample_id):
                    logger.warning("Skipping sample %s: not part of store %s", sample_id, handle.path)
                    continue
                column = block[:, offset]
                present = ~np.isnan(column)
                values = {probe_ids[i]: column[i] for i in np.flatnonzero(present)}
                fill(handle, sample_id, values, strict=strict)
                written.append(sample_id)
            logger.info("Filled %d/%d samples", c_end, len(sample_ids))
    return written


def fill_from_file(handle: StoreHandle, input_path: str, input_format: str = "auto",
                   strict: bool = False, skip_unknown_samples: bool = False,
                   dataset_name: Optional[str] = None) -> List[str]:
    """Load a labelled beta matrix from disk and fill it into `handle`."""
    betas, probes, samples = load_beta_matrix(
        input_path, input_format=input_format, dataset_name=dataset_name or "betas")
    return fill_from_matrix(handle, betas, probes, samples, strict=strict,
                            skip_unknown_samples=skip_unknown_samples)
