"""
Unit tests for platform tags and the injected probe reference.
"""

import unittest
import os
import tempfile
import shutil
import sys

import h5py
import numpy as np

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from methylset.errors import UnknownPlatformError
from methylset.platforms import Platform, ProbeReference


class TestPlatform(unittest.TestCase):
    """Test cases for Platform.parse()."""

    def test_parse_is_case_insensitive(self):
        self.assertIs(Platform.parse("epic"), Platform.EPIC)
        self.assertIs(Platform.parse(" HM450 "), Platform.HM450)

    def test_parse_passes_members_through(self):
        self.assertIs(Platform.parse(Platform.MM285), Platform.MM285)

    def test_unknown_tag_raises(self):
        for tag in ["HM850", "", None, 450]:
            with self.subTest(tag=tag):
                with self.assertRaises(UnknownPlatformError):
                    Platform.parse(tag)


class TestProbeReference(unittest.TestCase):
    """Test cases for ProbeReference lookups and loaders."""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        if os.path.exists(self.test_dir):
            shutil.rmtree(self.test_dir)

    def test_probes_for_keeps_manifest_order(self):
        reference = ProbeReference({"HM450": ["cg3", "cg1", "cg2"]})
        self.assertEqual(reference.probes_for(Platform.HM450), ("cg3", "cg1", "cg2"))
        self.assertEqual(reference.probes_for("hm450"), ("cg3", "cg1", "cg2"))

    def test_known_platform_without_catalog_raises(self):
        reference = ProbeReference({"HM450": ["cg1"]})
        with self.assertRaises(UnknownPlatformError):
            reference.probes_for("EPIC")

    def test_from_directory(self):
        with open(os.path.join(self.test_dir, "EPIC.probes.txt"), 'w') as f:
            f.write("cg1\ncg2\n\ncg3\n")
        with open(os.path.join(self.test_dir, "README"), 'w') as f:
            f.write("ignored")
        reference = ProbeReference.from_directory(self.test_dir)
        self.assertEqual(reference.platforms, (Platform.EPIC,))
        self.assertEqual(reference.probes_for("EPIC"), ("cg1", "cg2", "cg3"))

    def test_from_hdf5(self):
        path = os.path.join(self.test_dir, "reference.h5")
        with h5py.File(path, 'w') as f:
            f.create_dataset("HM27", data=np.array([b"cg10", b"cg20"]))
            f.create_dataset("MM285", data=np.array([b"cg30"]))
        reference = ProbeReference.from_hdf5(path)
        self.assertEqual(reference.probes_for("HM27"), ("cg10", "cg20"))
        self.assertEqual(reference.probes_for("MM285"), ("cg30",))

    def test_from_hdf5_missing_platform_raises(self):
        path = os.path.join(self.test_dir, "reference.h5")
        with h5py.File(path, 'w') as f:
            f.create_dataset("HM27", data=np.array([b"cg10"]))
        with self.assertRaises(UnknownPlatformError):
            ProbeReference.from_hdf5(path, platforms=["EPIC"])


if __name__ == '__main__':
    unittest.main()
