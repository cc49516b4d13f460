"""
Allocation, fill, slice and reopen of an indexed out-of-core beta matrix.

A store is two files: the matrix itself (headerless, column-major, one
fixed-width float per probe/sample cell) and a JSON catalog next to it
holding the probe and sample ordering. Cell (i, j) lives at byte
(j * P + i) * cell_byte_width.

Example:
    handle = allocate("betas.bin", ["cg1", "cg2", "cg3"], ["s1", "s2"])
    handle.fill("s2", {"cg1": 0.1, "cg2": 0.5, "cg3": 0.9})
    open_store("betas.bin").slice(["s2"], ["cg3", "cg1"]).values
    # -> [[0.9], [0.1]]

No locking is done. Fills of different samples touch disjoint byte
ranges; two fills of the same sample, or a slice racing a fill, must be
serialized by the caller.
"""

import logging
import os
import tempfile
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .catalog import IndexMetadata, catalog_path, read_catalog, stage_catalog
from .config import ALLOCATION_CHUNK_COLUMNS, CELL_DTYPES, DEFAULT_CELL_BYTE_WIDTH, SENTINEL
from .core import SliceResult, StoreHandle
from .errors import (
    AllocationError, StoreReadError, StoreWriteError, UnknownProbeError, UnknownSampleError,
)
from .layout import cell_offset, column_byte_range, store_nbytes
from .observability import get_profiler
from .platforms import Platform, ProbeReference

logger = logging.getLogger(__name__)


# ============================================================================
# Allocation
# ============================================================================

def _validate_ids(ids: Iterable[str], kind: str) -> Tuple[str, ...]:
    ids = tuple(ids)
    if not ids:
        raise AllocationError(f"{kind} identifiers must not be empty")
    for ident in ids:
        if not isinstance(ident, str) or not ident:
            raise AllocationError(f"{kind} identifiers must be non-empty strings, got {ident!r}")
    if len(set(ids)) != len(ids):
        seen, dups = set(), []
        for ident in ids:
            if ident in seen and ident not in dups:
                dups.append(ident)
            seen.add(ident)
        raise AllocationError(f"duplicate {kind} identifiers: {dups[:5]}")
    return ids


def _temp_path(directory: str, final: str) -> str:
    fd, tmp_path = tempfile.mkstemp(prefix=f".{os.path.basename(final)}.", suffix='.tmp', dir=directory)
    os.close(fd)
    return tmp_path


def _write_sentinel(filepath: str, shape: Tuple[int, int], dtype: np.dtype):
    """Size the file and set every cell to the sentinel, a block of columns at a time."""
    data = np.memmap(filepath, dtype=dtype, mode='w+', shape=shape, order='F')
    for c_start in range(0, shape[1], ALLOCATION_CHUNK_COLUMNS):
        c_end = min(c_start + ALLOCATION_CHUNK_COLUMNS, shape[1])
        data[:, c_start:c_end] = SENTINEL
    data.flush()
    del data


def allocate(path: str, probes: Sequence[str], samples: Sequence[str],
             cell_byte_width: int = DEFAULT_CELL_BYTE_WIDTH,
             platform: Optional[Union[str, Platform]] = None,
             overwrite: bool = False) -> StoreHandle:
    """
    Create a new store of len(probes) x len(samples) sentinel cells.

    The matrix and catalog are built under temporary names in the target
    directory and only renamed into place once both are complete, so a
    failed allocation leaves nothing at `path`, or with `overwrite` leaves the
    previous store as it was.

    Args:
        path: Location of the matrix file; the catalog goes to path + CATALOG_SUFFIX
        probes: Ordered, unique probe ids (row order)
        samples: Ordered, unique sample ids (column order)
        cell_byte_width: 4 (float32) or 8 (float64)
        platform: Optional platform tag recorded in the catalog
        overwrite: Replace an existing store at `path`

    Raises:
        AllocationError: on invalid dimensions or an unwritable path
    """
    path = os.fspath(path)
    probes = _validate_ids(probes, 'probe')
    samples = _validate_ids(samples, 'sample')
    if cell_byte_width not in CELL_DTYPES:
        raise AllocationError(
            f"unsupported cell byte width {cell_byte_width!r}; expected one of {sorted(CELL_DTYPES)}")
    nbytes = store_nbytes(len(probes), len(samples), cell_byte_width)
    if nbytes <= 0:
        raise AllocationError("store dimensions produce zero-length storage")

    directory = os.path.dirname(os.path.abspath(path))
    if not os.path.isdir(directory):
        raise AllocationError(f"target directory '{directory}' does not exist")
    if os.path.isdir(path):
        raise AllocationError(f"'{path}' is a directory")
    if not overwrite and (os.path.exists(path) or os.path.exists(catalog_path(path))):
        raise AllocationError(f"a store already exists at '{path}'")

    platform_tag = Platform.parse(platform).value if platform is not None else None
    metadata = IndexMetadata(path=os.path.basename(path), probes=probes, samples=samples,
                             cell_byte_width=cell_byte_width, platform=platform_tag)

    store_catalog = catalog_path(path)
    staged = []
    backups = {}
    installed = []
    try:
        tmp_store = _temp_path(directory, path)
        staged.append(tmp_store)
        _write_sentinel(tmp_store, (len(probes), len(samples)), metadata.dtype)
        tmp_catalog = stage_catalog(store_catalog, metadata)
        staged.append(tmp_catalog)
        # Previous store files stay under temporary names until both new files are in place
        for final in (path, store_catalog):
            if os.path.exists(final):
                backup = _temp_path(directory, final)
                staged.append(backup)
                os.replace(final, backup)
                staged.remove(backup)
                backups[final] = backup
        for tmp, final in ((tmp_store, path), (tmp_catalog, store_catalog)):
            os.replace(tmp, final)
            installed.append(final)
    except (OSError, ValueError) as exc:
        for final in installed:
            os.remove(final)
        for final, backup in backups.items():
            os.replace(backup, final)
        for tmp in staged:
            if os.path.exists(tmp):
                os.remove(tmp)
        raise AllocationError(f"could not allocate store at '{path}': {exc}") from exc

    for backup in backups.values():
        os.remove(backup)

    logger.info("Allocated store %s: %d probes x %d samples, %d-byte cells (%d bytes)",
                path, len(probes), len(samples), cell_byte_width, nbytes)
    return StoreHandle(path, metadata)


def allocate_for_platform(path: str, platform: Union[str, Platform], samples: Sequence[str],
                          reference: ProbeReference,
                          cell_byte_width: int = DEFAULT_CELL_BYTE_WIDTH,
                          overwrite: bool = False) -> StoreHandle:
    """
    Allocate a store whose rows are the canonical probe list of `platform`.

    Raises:
        UnknownPlatformError: if the tag is unknown or missing from `reference`
        AllocationError: as for allocate()
    """
    resolved = Platform.parse(platform)
    probes = reference.probes_for(resolved)
    return allocate(path, probes, samples, cell_byte_width=cell_byte_width,
                    platform=resolved, overwrite=overwrite)


# ============================================================================
# Reopen
# ============================================================================

def open_store(path: str) -> StoreHandle:
    """
    Reopen an existing store from its catalog.

    The matrix file is not inspected; a truncated store surfaces as a
    StoreReadError when the missing cells are sliced.

    Raises:
        CatalogNotFoundError: if the catalog is missing
        CatalogCorruptError: if the catalog cannot be decoded
    """
    path = os.fspath(path)
    metadata = read_catalog(path)
    logger.info("Opened store %s: %d probes x %d samples",
                path, metadata.num_probes, metadata.num_samples)
    return StoreHandle(path, metadata)


def describe(handle: StoreHandle) -> dict:
    """Dimensions and on-disk size of a store, with an explicit size check."""
    try:
        actual = os.path.getsize(handle.path)
    except FileNotFoundError:
        actual = None
    return {
        'path': handle.path,
        'platform': handle.platform,
        'num_probes': handle.num_probes,
        'num_samples': handle.num_samples,
        'cell_byte_width': handle.cell_byte_width,
        'dtype': handle.dtype.str,
        'expected_bytes': handle.nbytes,
        'actual_bytes': actual,
        'size_ok': actual == handle.nbytes,
    }


# ============================================================================
# Fill
# ============================================================================

def _resolve_values(handle: StoreHandle, values) -> Tuple[np.ndarray, np.ndarray, List[str]]:
    """Split a probe -> value mapping into row indices, decoded values and unknown ids."""
    items = values.items() if hasattr(values, 'items') else values
    index = handle.probe_index
    rows, vals, unknown = [], [], []
    for probe_id, value in items:
        row = index.get(probe_id)
        if row is None:
            unknown.append(probe_id)
            continue
        rows.append(row)
        vals.append(float(value))
    return np.asarray(rows, dtype=np.intp), np.asarray(vals, dtype=handle.dtype), unknown


def _map_column(handle: StoreHandle, sample_index: int, mode: str) -> np.memmap:
    start, end = column_byte_range(sample_index, handle.num_probes, handle.cell_byte_width)
    try:
        size = os.path.getsize(handle.path)
    except FileNotFoundError:
        size = -1
    if size < end:
        raise StoreWriteError(
            f"store '{handle.path}' is missing or truncated: column {sample_index} "
            f"needs bytes [{start}, {end}) but the file has {max(size, 0)}")
    return np.memmap(handle.path, dtype=handle.dtype, mode=mode,
                     offset=start, shape=(handle.num_probes,))


def fill(handle: StoreHandle, sample_id: str, values: Mapping[str, float], strict: bool = False) -> None:
    """
    Write one sample's beta values into its column.

    Probes absent from `values` keep their current content. Probe ids that
    are not part of the store are skipped with a warning, or rejected when
    `strict` is set. Only the byte range of the sample's column is touched.
    The write is not atomic: an interrupted fill leaves a mixed column.

    Raises:
        UnknownSampleError: if `sample_id` is not one of the store's samples
        UnknownProbeError: if `strict` and `values` names unknown probes
        StoreWriteError: if the matrix file is missing or truncated

    All validation happens before the first byte is written.
    """
    try:
        j = handle.sample_index[sample_id]
    except KeyError:
        raise UnknownSampleError(
            f"sample {sample_id!r} is not part of store '{handle.path}'") from None

    rows, vals, unknown = _resolve_values(handle, values)
    if unknown:
        if strict:
            raise UnknownProbeError(
                f"{len(unknown)} probe ids not in store '{handle.path}', e.g. {unknown[:5]}")
        logger.warning("Ignoring %d probe ids not in store for sample %s, e.g. %s",
                       len(unknown), sample_id, unknown[:5])

    with get_profiler().profile("fileset.fill", sample=sample_id, cells=int(rows.size)):
        if rows.size:
            column = _map_column(handle, j, mode='r+')
            column[rows] = vals
            column.flush()
            del column

    logger.debug("Filled %d of %d cells for sample %s (column %d)",
                 rows.size, handle.num_probes, sample_id, j)


# ============================================================================
# Slice
# ============================================================================

def _match(requested: Sequence[str], index: dict) -> Tuple[List[str], List[int]]:
    """Keep the ids that resolve, in the caller's order."""
    matched, positions = [], []
    for ident in requested:
        pos = index.get(ident)
        if pos is not None:
            matched.append(ident)
            positions.append(pos)
    return matched, positions


def slice_cells(handle: StoreHandle, sample_ids: Sequence[str], probe_ids: Sequence[str]) -> SliceResult:
    """
    Read arbitrary (probe, sample) cells with one seek and read per cell.

    Ids that do not resolve are dropped, so the result may be smaller than
    the request; compare its shape with the request to detect that. Rows
    follow `probe_ids` and columns follow `sample_ids` as given.
    This path suits sparse lookups; use read_columns() for dense reads.

    Raises:
        StoreReadError: if the matrix file is missing or a cell lies past its end
    """
    if isinstance(sample_ids, str):
        sample_ids = [sample_ids]
    if isinstance(probe_ids, str):
        probe_ids = [probe_ids]
    probes, rows = _match(probe_ids, handle.probe_index)
    samples, cols = _match(sample_ids, handle.sample_index)
    dropped = (len(probe_ids) - len(probes), len(sample_ids) - len(samples))
    if any(dropped):
        logger.debug("Slice dropped %d unresolved probe ids and %d unresolved sample ids", *dropped)

    width = handle.cell_byte_width
    result = np.empty((len(probes), len(samples)), dtype=handle.dtype)

    with get_profiler().profile("fileset.slice", cells=int(result.size)):
        if result.size:
            try:
                f = open(handle.path, 'rb')
            except FileNotFoundError as exc:
                raise StoreReadError(f"store file '{handle.path}' does not exist") from exc
            with f:
                for c, j in enumerate(cols):
                    for r, i in enumerate(rows):
                        offset = cell_offset(i, j, handle.num_probes, width)
                        f.seek(offset)
                        raw = f.read(width)
                        if len(raw) != width:
                            raise StoreReadError(
                                f"short read at byte {offset} of '{handle.path}' "
                                f"(probe {probes[r]!r}, sample {samples[c]!r}); store is truncated")
                        result[r, c] = np.frombuffer(raw, dtype=handle.dtype)[0]

    return SliceResult(result, probes, samples)


def read_columns(handle: StoreHandle, sample_ids: Sequence[str]) -> SliceResult:
    """
    Read whole sample columns through a read-only memory map.

    Unresolved sample ids are dropped; columns follow the caller's order and
    rows cover every probe in store order.

    Raises:
        StoreReadError: if the matrix file is missing or shorter than the catalog says
    """
    if isinstance(sample_ids, str):
        sample_ids = [sample_ids]
    samples, cols = _match(sample_ids, handle.sample_index)
    with get_profiler().profile("fileset.read_columns", columns=len(cols)):
        if not cols:
            return SliceResult(np.empty((handle.num_probes, 0), dtype=handle.dtype),
                               handle.probes, [])
        try:
            data = np.memmap(handle.path, dtype=handle.dtype, mode='r',
                             shape=handle.shape, order='F')
        except (OSError, ValueError) as exc:
            raise StoreReadError(f"cannot map store '{handle.path}': {exc}") from exc
        # Fancy indexing copies into a concrete in-memory array
        values = np.array(data[:, cols])
        del data
    return SliceResult(values, handle.probes, samples)
