import unittest

import numpy as np

from core.base import VolumeDescriptor
from core.buffers import adapt_input, allocate_output, scalar_range, view_volume, write_back
from core.errors import PreconditionError
from core.scalar_types import NumericKind


class TestVolumeDescriptor(unittest.TestCase):
    def test_from_array_geometry_is_xyz(self):
        arr = np.zeros((2, 3, 4), dtype=np.int16)
        vol = VolumeDescriptor.from_array(arr, spacing=(0.5, 1.0, 2.0))
        self.assertEqual(vol.dimensions, (4, 3, 2))
        self.assertEqual(vol.shape_zyx, (2, 3, 4))
        self.assertIs(vol.kind, NumericKind.INT16)
        vol.validate()

    def test_vtk_scalar_code_as_kind(self):
        vol = VolumeDescriptor((2, 2, 2), scalar_kind=4, buffer=bytearray(16))
        self.assertIs(vol.kind, NumericKind.INT16)
        vol.validate()

    def test_buffer_length_invariant(self):
        vol = VolumeDescriptor((2, 2, 2), scalar_kind="uint8", buffer=bytearray(7))
        with self.assertRaises(PreconditionError):
            vol.validate()

    def test_missing_buffer_is_rejected(self):
        with self.assertRaises(PreconditionError):
            VolumeDescriptor((2, 2, 2)).validate()


class TestAdaptation(unittest.TestCase):
    def setUp(self):
        self.arr = np.arange(24, dtype=np.int16).reshape(2, 3, 4)
        self.vol = VolumeDescriptor.from_array(self.arr)

    def test_alias_is_a_read_only_view(self):
        view = adapt_input(self.vol, "alias", scalar_type=np.int16)
        self.assertFalse(view.owns_memory)
        self.assertTrue(np.shares_memory(view.array, self.arr))
        self.assertFalse(view.array.flags.writeable)
        self.assertEqual(view.component(0)[1, 2, 3], self.arr[1, 2, 3])

    def test_bridge_copies_into_working_kind(self):
        owned = adapt_input(self.vol, "bridge", working_kind=NumericKind.FLOAT32)
        self.assertTrue(owned.owns_memory)
        self.assertEqual(owned.array.dtype, np.float32)
        self.assertFalse(np.shares_memory(owned.array, self.arr))
        np.testing.assert_array_equal(owned.component(0), self.arr.astype(np.float32))

    def test_dispatched_type_must_match(self):
        with self.assertRaises(PreconditionError):
            adapt_input(self.vol, "alias", scalar_type=np.uint8)

    def test_bytearray_buffer_is_viewed_without_copy(self):
        vol = VolumeDescriptor.allocate((4, 3, 2), "uint16", components=2)
        view = view_volume(vol, writable=True)
        self.assertEqual(view.array.shape, (2, 3, 4, 2))
        view.array[1, 2, 3, 1] = 77
        self.assertEqual(np.frombuffer(vol.buffer, dtype=np.uint16)[-1], 77)


class TestWriteBack(unittest.TestCase):
    def test_write_back_copies_once(self):
        target = VolumeDescriptor.allocate((4, 3, 2), "uint8")
        result = allocate_output((2, 3, 4), NumericKind.UINT8, 1, target.spacing, target.origin)
        result.array[...] = 9
        write_back(result, target)
        np.testing.assert_array_equal(view_volume(target).array, 9)

    def test_mismatch_leaves_target_untouched(self):
        original = np.full((2, 3, 4), 5, dtype=np.int16)
        target = VolumeDescriptor.from_array(original)
        result = allocate_output((2, 3, 4), NumericKind.UINT8, 1, target.spacing, target.origin)
        result.array[...] = 1
        with self.assertRaises(PreconditionError):
            write_back(result, target)
        np.testing.assert_array_equal(original, 5)


def test_scalar_range_ignores_non_finite_values():
    arr = np.array([[[np.nan, -2.0, np.inf, 7.5]]], dtype=np.float32)
    assert scalar_range(VolumeDescriptor.from_array(arr)) == (-2.0, 7.5)


def test_scalar_range_falls_back_to_type_range():
    arr = np.full((1, 2, 2), np.nan, dtype=np.float64)
    lo, hi = scalar_range(VolumeDescriptor.from_array(arr))
    assert lo == NumericKind.FLOAT64.type_min
    assert hi == NumericKind.FLOAT64.type_max

    declared = VolumeDescriptor((2, 2, 2), scalar_kind="int8")
    assert scalar_range(declared) == (-128.0, 127.0)


def test_scalar_range_covers_all_components():
    arr = np.zeros((2, 2, 2, 2), dtype=np.uint8)
    arr[..., 1] = 40
    arr[0, 0, 0, 0] = 3
    assert scalar_range(VolumeDescriptor.from_array(arr)) == (0.0, 40.0)
