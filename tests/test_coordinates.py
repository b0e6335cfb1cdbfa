import unittest

from core.base import VolumeDescriptor
from core.coordinates import (
    Marker,
    SeedPoint,
    marker_to_seed,
    markers_to_seeds,
    voxel_zyx_to_world_xyz,
    world_xyz_to_index_zyx,
    world_xyz_to_voxel_zyx,
)
from core.errors import PreconditionError


class TestCoordinateConversions(unittest.TestCase):
    def setUp(self):
        self.volume = VolumeDescriptor.allocate(
            (10, 20, 30), "uint8", spacing=(2.0, 3.0, 4.0), origin=(10.0, 20.0, 30.0)
        )

    def test_world_to_voxel_and_index_zyx(self):
        spacing = (2.0, 3.0, 4.0)
        origin = (10.0, 20.0, 30.0)
        world = (14.4, 23.2, 34.1)

        zf, yf, xf = world_xyz_to_voxel_zyx(world, spacing, origin)
        self.assertAlmostEqual(zf, (34.1 - 30.0) / 4.0)
        self.assertAlmostEqual(yf, (23.2 - 20.0) / 3.0)
        self.assertAlmostEqual(xf, (14.4 - 10.0) / 2.0)

        self.assertEqual(world_xyz_to_index_zyx(world, spacing, origin), (1, 1, 2))

    def test_marker_to_seed_world_frame(self):
        seed = marker_to_seed((14.4, 23.2, 34.1), self.volume)
        self.assertEqual(seed, SeedPoint(z=1, y=1, x=2))

    def test_index_world_round_trip(self):
        for z, y, x in [(0, 0, 0), (29, 19, 9), (7, 3, 5)]:
            world = voxel_zyx_to_world_xyz(z, y, x, self.volume.spacing, self.volume.origin)
            self.assertEqual(marker_to_seed(Marker(world), self.volume), SeedPoint(z, y, x))

    def test_index_frame_rounds_to_nearest(self):
        seed = marker_to_seed(Marker((2.6, 0.2, 1.4), frame="index"), self.volume)
        self.assertEqual(seed, SeedPoint(z=1, y=0, x=3))

    def test_out_of_bounds_marker_is_rejected_not_clipped(self):
        with self.assertRaises(PreconditionError):
            marker_to_seed((-5.0, 20.0, 30.0), self.volume)
        with self.assertRaises(PreconditionError):
            marker_to_seed(Marker((10.0, 0.0, 0.0), frame="index"), self.volume)

    def test_unknown_frame(self):
        with self.assertRaises(PreconditionError):
            marker_to_seed(Marker((0.0, 0.0, 0.0), frame="patient"), self.volume)

    def test_required_seeds(self):
        self.assertEqual(markers_to_seeds([], self.volume), [])
        with self.assertRaisesRegex(PreconditionError, "Please select seed points"):
            markers_to_seeds([], self.volume, required=True)
