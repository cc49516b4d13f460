"""
Unit tests for index metadata encoding and the persisted catalog.
"""

import unittest
import os
import json
import tempfile
import shutil
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from methylset.catalog import (
    IndexMetadata, catalog_path, decode_catalog, encode_catalog, read_catalog, write_catalog,
)
from methylset.config import CATALOG_SUFFIX
from methylset.errors import CatalogCorruptError, CatalogNotFoundError, CatalogError


class TestCatalog(unittest.TestCase):
    """Test cases for catalog encode/decode and file round-trips."""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.store_path = os.path.join(self.test_dir, "betas.bin")
        self.metadata = IndexMetadata(
            path="betas.bin",
            probes=("cg1", "cg2", "cg3"),
            samples=("s1", "s2"),
            cell_byte_width=8,
            platform="HM450",
        )

    def tearDown(self):
        if os.path.exists(self.test_dir):
            shutil.rmtree(self.test_dir)

    def _write_raw(self, payload):
        with open(catalog_path(self.store_path), 'w') as f:
            f.write(payload)

    def test_catalog_path_uses_suffix(self):
        self.assertEqual(catalog_path(self.store_path), self.store_path + CATALOG_SUFFIX)

    def test_encode_decode_round_trip(self):
        decoded = decode_catalog(encode_catalog(self.metadata))
        self.assertEqual(decoded, self.metadata)
        self.assertEqual(decoded.num_probes, 3)
        self.assertEqual(decoded.num_samples, 2)

    def test_round_trip_preserves_unicode_and_order(self):
        metadata = IndexMetadata(path="x", probes=("rs9", "cg2", "ch.1.5"),
                                 samples=("TCGA-ÆB", "s 2"), cell_byte_width=4)
        decoded = decode_catalog(encode_catalog(metadata))
        self.assertEqual(decoded.probes, ("rs9", "cg2", "ch.1.5"))
        self.assertEqual(decoded.samples, ("TCGA-ÆB", "s 2"))
        self.assertEqual(decoded.dtype.itemsize, 4)

    def test_write_then_read(self):
        write_catalog(catalog_path(self.store_path), self.metadata)
        self.assertEqual(read_catalog(self.store_path), self.metadata)
        # No temporary files left behind
        self.assertEqual(sorted(os.listdir(self.test_dir)), ["betas.bin" + CATALOG_SUFFIX])

    def test_missing_catalog_raises_not_found(self):
        with self.assertRaises(CatalogNotFoundError):
            read_catalog(self.store_path)

    def test_not_found_is_a_catalog_error(self):
        with self.assertRaises(CatalogError):
            read_catalog(self.store_path)

    def test_unreadable_catalog_raises_corrupt(self):
        # A directory where the catalog file should be
        os.mkdir(catalog_path(self.store_path))
        with self.assertRaises(CatalogCorruptError):
            read_catalog(self.store_path)

    def test_invalid_json_raises_corrupt(self):
        self._write_raw("{not json")
        with self.assertRaises(CatalogCorruptError):
            read_catalog(self.store_path)

    def test_wrong_format_marker_raises_corrupt(self):
        doc = self.metadata.to_dict()
        doc['format'] = 'something.else'
        self._write_raw(json.dumps(doc))
        with self.assertRaises(CatalogCorruptError):
            read_catalog(self.store_path)

    def test_invalid_fields_raise_corrupt(self):
        cases = {
            'missing probes': lambda d: d.pop('probes'),
            'empty samples': lambda d: d.update(samples=[]),
            'non-string probe': lambda d: d.update(probes=["cg1", 2]),
            'duplicate samples': lambda d: d.update(samples=["s1", "s1"]),
            'bad width': lambda d: d.update(cell_byte_width=3),
            'width/dtype mismatch': lambda d: d.update(dtype="<f4"),
            'bad version': lambda d: d.update(version=99),
        }
        for name, mutate in cases.items():
            with self.subTest(case=name):
                doc = self.metadata.to_dict()
                mutate(doc)
                self._write_raw(json.dumps(doc))
                with self.assertRaises(CatalogCorruptError):
                    read_catalog(self.store_path)

    def test_top_level_must_be_object(self):
        with self.assertRaises(CatalogCorruptError):
            decode_catalog(b"[1, 2, 3]")


if __name__ == '__main__':
    unittest.main()
