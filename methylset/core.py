
# --- Purpose: In-memory handle on an on-disk beta-value matrix store. ---

import os
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from .catalog import IndexMetadata, catalog_path
from .layout import store_nbytes


class StoreHandle:
    """
    Represents a probes x samples matrix stored on disk.
    It holds the index metadata and the store path but never keeps the
    matrix file open; every operation opens the file for its own duration.
    """
    def __init__(self, path: str, metadata: IndexMetadata):
        self.path = os.fspath(path)
        self.metadata = metadata
        # Built on first use and reused by every fill and slice
        self._probe_index: Optional[Dict[str, int]] = None
        self._sample_index: Optional[Dict[str, int]] = None

    @property
    def probes(self) -> Tuple[str, ...]:
        return self.metadata.probes

    @property
    def samples(self) -> Tuple[str, ...]:
        return self.metadata.samples

    @property
    def num_probes(self) -> int:
        return self.metadata.num_probes

    @property
    def num_samples(self) -> int:
        return self.metadata.num_samples

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.num_probes, self.num_samples)

    @property
    def cell_byte_width(self) -> int:
        return self.metadata.cell_byte_width

    @property
    def dtype(self) -> np.dtype:
        return self.metadata.dtype

    @property
    def platform(self) -> Optional[str]:
        return self.metadata.platform

    @property
    def catalog_path(self) -> str:
        return catalog_path(self.path)

    @property
    def nbytes(self) -> int:
        """Byte length the matrix file must have."""
        return store_nbytes(self.num_probes, self.num_samples, self.cell_byte_width)

    @property
    def probe_index(self) -> Dict[str, int]:
        if self._probe_index is None:
            self._probe_index = {probe: i for i, probe in enumerate(self.probes)}
        return self._probe_index

    @property
    def sample_index(self) -> Dict[str, int]:
        if self._sample_index is None:
            self._sample_index = {sample: j for j, sample in enumerate(self.samples)}
        return self._sample_index

    def has_sample(self, sample_id: str) -> bool:
        return sample_id in self.sample_index

    # Operations delegate to the services in methylset.fileset

    def fill(self, sample_id: str, values, strict: bool = False) -> None:
        from .fileset import fill
        fill(self, sample_id, values, strict=strict)

    def slice(self, sample_ids: Sequence[str], probe_ids: Sequence[str]) -> 'SliceResult':
        from .fileset import slice_cells
        return slice_cells(self, sample_ids, probe_ids)

    def read_columns(self, sample_ids: Sequence[str]) -> 'SliceResult':
        from .fileset import read_columns
        return read_columns(self, sample_ids)

    def __repr__(self):
        return (f"StoreHandle(path='{self.path}', probes={self.num_probes}, "
                f"samples={self.num_samples}, dtype={self.dtype.name})")


class SliceResult:
    """
    Dense beta values labelled by probe (rows) and sample (columns), in the
    order the caller asked for them.
    """
    def __init__(self, values: np.ndarray, probes: Sequence[str], samples: Sequence[str]):
        self.values = values
        self.probes = list(probes)
        self.samples = list(samples)
        if values.shape != (len(self.probes), len(self.samples)):
            raise ValueError(
                f"values shape {values.shape} does not match "
                f"{len(self.probes)} probes x {len(self.samples)} samples")

    @property
    def shape(self) -> Tuple[int, int]:
        return self.values.shape

    def get(self, probe_id: str, sample_id: str) -> float:
        """Value for one (probe, sample) pair; the first match wins for repeated ids."""
        return float(self.values[self.probes.index(probe_id), self.samples.index(sample_id)])

    def column(self, sample_id: str) -> np.ndarray:
        return self.values[:, self.samples.index(sample_id)]

    def drop_unfilled(self) -> 'SliceResult':
        """Drop probe rows in which every value is still the NaN sentinel."""
        if self.values.size == 0:
            return self
        keep = ~np.all(np.isnan(self.values), axis=1)
        probes = [p for p, k in zip(self.probes, keep) if k]
        return SliceResult(self.values[keep], probes, self.samples)

    def to_dict(self) -> Dict[str, Dict[str, Optional[float]]]:
        """Nested mapping sample -> probe -> value, with None for unfilled cells."""
        return {
            sample: {
                probe: None if np.isnan(self.values[i, j]) else float(self.values[i, j])
                for i, probe in enumerate(self.probes)
            }
            for j, sample in enumerate(self.samples)
        }

    def __repr__(self):
        return f"SliceResult(shape={self.shape}, probes={self.probes[:3]}, samples={self.samples[:3]})"
