"""
Unit tests for the byte-offset arithmetic of the column-major store.
These need no file I/O.
"""

import unittest
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from methylset.layout import cell_offset, column_byte_range, store_nbytes


class TestCellOffset(unittest.TestCase):
    """Test cases for cell_offset()."""

    def test_first_cell_is_at_zero(self):
        self.assertEqual(cell_offset(0, 0, num_probes=3, cell_byte_width=8), 0)

    def test_rows_are_contiguous_within_a_column(self):
        self.assertEqual(cell_offset(1, 0, 3, 8), 8)
        self.assertEqual(cell_offset(2, 0, 3, 8), 16)

    def test_columns_follow_each_other(self):
        # (j * P + i) * width
        self.assertEqual(cell_offset(0, 1, 3, 8), 24)
        self.assertEqual(cell_offset(2, 1, 3, 8), 40)
        self.assertEqual(cell_offset(4, 7, 10, 4), (7 * 10 + 4) * 4)

    def test_every_cell_has_a_distinct_offset(self):
        num_probes, num_samples = 5, 4
        offsets = {
            cell_offset(i, j, num_probes, 8)
            for i in range(num_probes) for j in range(num_samples)
        }
        self.assertEqual(len(offsets), num_probes * num_samples)
        self.assertEqual(max(offsets), store_nbytes(num_probes, num_samples, 8) - 8)

    def test_out_of_range_probe_index_raises(self):
        with self.assertRaises(IndexError):
            cell_offset(3, 0, 3, 8)
        with self.assertRaises(IndexError):
            cell_offset(-1, 0, 3, 8)

    def test_negative_sample_index_raises(self):
        with self.assertRaises(IndexError):
            cell_offset(0, -1, 3, 8)


class TestColumnRange(unittest.TestCase):
    """Test cases for column_byte_range() and store_nbytes()."""

    def test_column_ranges_tile_the_store(self):
        ranges = [column_byte_range(j, 3, 8) for j in range(2)]
        self.assertEqual(ranges, [(0, 24), (24, 48)])
        self.assertEqual(ranges[-1][1], store_nbytes(3, 2, 8))

    def test_store_nbytes(self):
        self.assertEqual(store_nbytes(3, 2, 8), 48)
        self.assertEqual(store_nbytes(485577, 10, 4), 485577 * 10 * 4)


if __name__ == '__main__':
    unittest.main()
