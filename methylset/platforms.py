"""
Array platforms and the reference dataset of their canonical probe lists.

The reference is an explicit, read-only object handed to allocation; there is
no process-wide registry of annotation data.
"""

import enum
import logging
import os
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

import h5py

from .errors import UnknownPlatformError

logger = logging.getLogger(__name__)

PROBE_LIST_SUFFIX = ".probes.txt"


class Platform(enum.Enum):
    """Closed set of supported Infinium array designs."""
    EPIC = "EPIC"
    HM450 = "HM450"
    HM27 = "HM27"
    MM285 = "MM285"

    @classmethod
    def parse(cls, tag: Union[str, 'Platform']) -> 'Platform':
        """Resolve a user supplied tag (case-insensitive) to a Platform."""
        if isinstance(tag, cls):
            return tag
        if isinstance(tag, str):
            key = tag.strip().upper()
            for member in cls:
                if member.value == key:
                    return member
        choices = ", ".join(m.value for m in cls)
        raise UnknownPlatformError(f"unknown platform {tag!r}; expected one of: {choices}")


class ProbeReference:
    """
    Read-only mapping from platform to its ordered canonical probe list.

    Example:
        reference = ProbeReference({Platform.HM450: ["cg00000029", ...]})
        probes = reference.probes_for("HM450")
    """

    def __init__(self, catalogs: Mapping[Union[str, Platform], Iterable[str]]):
        self._catalogs: Dict[Platform, Tuple[str, ...]] = {}
        for tag, probes in catalogs.items():
            self._catalogs[Platform.parse(tag)] = tuple(probes)

    @property
    def platforms(self) -> Tuple[Platform, ...]:
        return tuple(p for p in Platform if p in self._catalogs)

    def probes_for(self, platform: Union[str, Platform]) -> Tuple[str, ...]:
        """
        Return the canonical probe ids for `platform` in manifest order.

        Raises:
            UnknownPlatformError: if the tag is not a known platform or the
                reference carries no catalog for it
        """
        resolved = Platform.parse(platform)
        try:
            return self._catalogs[resolved]
        except KeyError:
            raise UnknownPlatformError(
                f"no probe catalog for platform {resolved.value} in this reference") from None

    @classmethod
    def from_directory(cls, directory: str) -> 'ProbeReference':
        """Load every `<PLATFORM>.probes.txt` (one probe id per line) in `directory`."""
        catalogs = {}
        for name in sorted(os.listdir(directory)):
            if not name.endswith(PROBE_LIST_SUFFIX):
                continue
            tag = name[:-len(PROBE_LIST_SUFFIX)]
            with open(os.path.join(directory, name), 'r', encoding='utf-8') as f:
                probes = [line.strip() for line in f if line.strip()]
            catalogs[Platform.parse(tag)] = probes
            logger.debug("Loaded %d probes for %s from %s", len(probes), tag, name)
        return cls(catalogs)

    @classmethod
    def from_hdf5(cls, path: str, platforms: Optional[Sequence[str]] = None) -> 'ProbeReference':
        """Load one string dataset per platform (dataset name = platform tag) from an HDF5 file."""
        catalogs = {}
        with h5py.File(path, 'r') as f:
            names = platforms if platforms is not None else list(f.keys())
            for name in names:
                if name not in f:
                    raise UnknownPlatformError(f"platform {name!r} not present in {path}")
                probes = [p.decode('utf-8') if isinstance(p, bytes) else str(p) for p in f[name][()]]
                catalogs[Platform.parse(name)] = probes
        return cls(catalogs)

    def __repr__(self):
        sizes = ", ".join(f"{p.value}={len(self._catalogs[p])}" for p in self.platforms)
        return f"ProbeReference({sizes})"
