# --- Purpose: Byte-offset arithmetic for the column-major matrix store. ---

from typing import Tuple


def cell_offset(probe_index: int, sample_index: int, num_probes: int, cell_byte_width: int) -> int:
    """
    Byte offset of cell (probe_index, sample_index) in a column-major store.

    Cell (i, j) lives at (j * P + i) * width. Indices are checked against the
    probe dimension only; the sample dimension is unbounded here because the
    function knows nothing about the file.
    """
    if not 0 <= probe_index < num_probes:
        raise IndexError(f"probe index {probe_index} out of range for {num_probes} probes")
    if sample_index < 0:
        raise IndexError(f"sample index {sample_index} must be non-negative")
    return (sample_index * num_probes + probe_index) * cell_byte_width


def column_byte_range(sample_index: int, num_probes: int, cell_byte_width: int) -> Tuple[int, int]:
    """Half-open byte range [start, end) holding one sample's column."""
    start = cell_offset(0, sample_index, num_probes, cell_byte_width)
    return start, start + num_probes * cell_byte_width


def store_nbytes(num_probes: int, num_samples: int, cell_byte_width: int) -> int:
    """Exact byte length of a store with the given dimensions."""
    return num_probes * num_samples * cell_byte_width
