"""
Index metadata for a matrix store and its persisted catalog.

The catalog is a small JSON document written next to the matrix file
(store path + CATALOG_SUFFIX). It is the only source of the probe and
sample ordering: reopening a store never inspects the matrix file itself.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .config import CATALOG_FORMAT, CATALOG_SUFFIX, CATALOG_VERSION, CELL_DTYPES
from .errors import CatalogCorruptError, CatalogNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexMetadata:
    """Fixed catalog of probe and sample identifiers for one store."""
    path: str
    probes: Tuple[str, ...]
    samples: Tuple[str, ...]
    cell_byte_width: int
    platform: Optional[str] = None

    @property
    def num_probes(self) -> int:
        return len(self.probes)

    @property
    def num_samples(self) -> int:
        return len(self.samples)

    @property
    def dtype(self) -> np.dtype:
        return CELL_DTYPES[self.cell_byte_width]

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'format': CATALOG_FORMAT,
            'version': CATALOG_VERSION,
            'path': self.path,
            'cell_byte_width': self.cell_byte_width,
            'dtype': self.dtype.str,
            'platform': self.platform,
            'probes': list(self.probes),
            'samples': list(self.samples),
        }

    @classmethod
    def from_dict(cls, data) -> 'IndexMetadata':
        """
        Rebuild metadata from a decoded catalog document.

        Raises:
            CatalogCorruptError: if any field is missing, mistyped or inconsistent
        """
        if not isinstance(data, dict):
            raise CatalogCorruptError("catalog document is not a JSON object")
        if data.get('format') != CATALOG_FORMAT:
            raise CatalogCorruptError(f"unexpected catalog format marker: {data.get('format')!r}")
        if data.get('version') != CATALOG_VERSION:
            raise CatalogCorruptError(f"unsupported catalog version: {data.get('version')!r}")

        width = data.get('cell_byte_width')
        if isinstance(width, bool) or width not in CELL_DTYPES:
            raise CatalogCorruptError(f"unsupported cell byte width: {width!r}")
        if data.get('dtype') != CELL_DTYPES[width].str:
            raise CatalogCorruptError(
                f"dtype {data.get('dtype')!r} does not match cell byte width {width}")

        probes = _string_tuple(data, 'probes')
        samples = _string_tuple(data, 'samples')

        path = data.get('path')
        platform = data.get('platform')
        if not isinstance(path, str):
            raise CatalogCorruptError("catalog field 'path' must be a string")
        if platform is not None and not isinstance(platform, str):
            raise CatalogCorruptError("catalog field 'platform' must be a string or null")

        return cls(path=path, probes=probes, samples=samples,
                   cell_byte_width=width, platform=platform)


def _string_tuple(data: dict, key: str) -> Tuple[str, ...]:
    values = data.get(key)
    if not isinstance(values, list) or not values:
        raise CatalogCorruptError(f"catalog field '{key}' must be a non-empty list")
    if not all(isinstance(v, str) for v in values):
        raise CatalogCorruptError(f"catalog field '{key}' must contain only strings")
    if len(set(values)) != len(values):
        raise CatalogCorruptError(f"catalog field '{key}' contains duplicate identifiers")
    return tuple(values)


def catalog_path(store_path: str) -> str:
    """Conventional catalog location for a matrix store."""
    return os.fspath(store_path) + CATALOG_SUFFIX


def encode_catalog(metadata: IndexMetadata) -> bytes:
    return json.dumps(metadata.to_dict(), indent=1).encode('utf-8')


def decode_catalog(raw: bytes) -> IndexMetadata:
    try:
        data = json.loads(raw.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CatalogCorruptError(f"catalog is not valid UTF-8 JSON: {exc}") from exc
    return IndexMetadata.from_dict(data)


def stage_catalog(target: str, metadata: IndexMetadata) -> str:
    """
    Write the catalog to a temporary file next to `target` and return its
    path. The caller renames it into place.
    """
    directory = os.path.dirname(os.path.abspath(target))
    fd, tmp_path = tempfile.mkstemp(suffix='.tmp', prefix='.catalog_', dir=directory)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(encode_catalog(metadata))
            f.flush()
            os.fsync(f.fileno())
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    return tmp_path


def write_catalog(target: str, metadata: IndexMetadata) -> None:
    """
    Write the catalog to `target` through a temporary file and a rename,
    so a reader never observes a half-written catalog.
    """
    tmp_path = stage_catalog(target, metadata)
    try:
        os.replace(tmp_path, target)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    logger.debug("Wrote catalog %s (%d probes x %d samples)",
                 target, metadata.num_probes, metadata.num_samples)


def read_catalog(store_path: str) -> IndexMetadata:
    """
    Load the catalog belonging to `store_path`.

    Raises:
        CatalogNotFoundError: if the catalog file is missing
        CatalogCorruptError: if it cannot be read or decoded
    """
    target = catalog_path(store_path)
    try:
        with open(target, 'rb') as f:
            raw = f.read()
    except FileNotFoundError as exc:
        raise CatalogNotFoundError(f"no catalog found at '{target}'") from exc
    except OSError as exc:
        raise CatalogCorruptError(f"cannot read catalog at '{target}': {exc}") from exc
    return decode_catalog(raw)
