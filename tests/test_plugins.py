"""
End-to-end runs of every registered plugin through the generic module.
"""

import unittest

import numpy as np
import pytest

from core.base import VolumeDescriptor
from core.buffers import view_volume
from core.dto import ExecutionStatus
from core.errors import PreconditionError
from core.module import run_filter
from core.runner import RunState
from core.scalar_types import NumericKind
from loaders import SyntheticVolumeLoader
from plugins import PLUGINS, available_plugins, get_plugin


def _array(output):
    arr = view_volume(output).array
    return arr[..., 0] if arr.shape[3] == 1 else arr


def _cube(shape=16, lo=4, hi=12, inside=100, outside=1000, dtype=np.int16):
    arr = np.full((shape, shape, shape), outside, dtype=dtype)
    arr[lo:hi, lo:hi, lo:hi] = inside
    return arr


class TestRegistry(unittest.TestCase):
    def test_all_plugins_registered(self):
        self.assertEqual(
            available_plugins(),
            sorted([
                "anisotropic_diffusion",
                "anti_alias",
                "confidence_connected",
                "geodesic_active_contour",
                "geodesic_active_contour_module",
                "gradient_magnitude",
                "intensity_windowing",
                "sigmoid",
            ]),
        )
        for key, spec in PLUGINS.items():
            self.assertEqual(spec.key, key)
            self.assertFalse(spec.supports_in_place)

    def test_unknown_plugin(self):
        with self.assertRaises(PreconditionError):
            get_plugin("median")

    def test_describe_is_static(self):
        info = get_plugin("intensity_windowing").describe()
        self.assertEqual(info["cast_policy"], "linear")
        self.assertTrue(info["supports_pieces"])
        names = [p["name"] for p in info["parameters"]]
        self.assertEqual(names, ["window_minimum", "window_maximum", "output_minimum", "output_maximum"])
        self.assertIsNone(info["parameters"][0]["default"])


class TestAnisotropicDiffusion(unittest.TestCase):
    def test_outlier_is_smoothed_into_its_neighbors(self):
        arr = np.full((8, 8, 8), 100, dtype=np.uint8)
        arr[4, 4, 4] = 200
        params = {"iterations": 1, "time_step": 0.01, "conductance": 1000}

        result, output = run_filter(get_plugin("anisotropic_diffusion"), VolumeDescriptor.from_array(arr), params)

        self.assertTrue(result.succeeded, result.message)
        self.assertIs(result.run_state, RunState.ITERATION_LIMIT_REACHED)
        out = _array(output)
        self.assertEqual(out.dtype, np.uint8)
        self.assertEqual(out[4, 4, 4], 196)
        for idx in [(4, 4, 3), (4, 4, 5), (4, 3, 4), (4, 5, 4), (3, 4, 4), (5, 4, 4)]:
            self.assertEqual(out[idx], 101)
        self.assertEqual(out[0, 0, 0], 100)
        self.assertEqual(out[4, 5, 5], 100)
        self.assertEqual(result.report, "")

    def test_components_are_filtered_independently(self):
        arr = np.full((8, 8, 8, 2), 100, dtype=np.uint8)
        arr[4, 4, 4, 0] = 200
        params = {"iterations": 1, "time_step": 0.01, "conductance": 1000}

        result, output = run_filter(get_plugin("anisotropic_diffusion"), VolumeDescriptor.from_array(arr), params)

        self.assertTrue(result.succeeded, result.message)
        out = view_volume(output).array
        self.assertEqual(out[4, 4, 4, 0], 196)
        np.testing.assert_array_equal(out[..., 1], 100)

    def test_float_input_keeps_kind(self):
        arr = np.random.default_rng(0).normal(size=(6, 6, 6)).astype(np.float64)
        result, output = run_filter(get_plugin("anisotropic_diffusion"), VolumeDescriptor.from_array(arr))
        self.assertTrue(result.succeeded, result.message)
        out = _array(output)
        self.assertEqual(out.dtype, np.float64)
        self.assertLess(out.std(), arr.std())


class TestConfidenceConnected(unittest.TestCase):
    def test_cube_is_segmented_from_center_seed(self):
        arr = _cube()
        result, output = run_filter(
            get_plugin("confidence_connected"),
            VolumeDescriptor.from_array(arr),
            {"initial_radius": 2},
            markers=[(8.0, 8.0, 8.0)],
        )

        self.assertTrue(result.succeeded, result.message)
        out = _array(output)
        self.assertEqual(out.dtype, np.uint8)
        expected = np.where(arr == 100, 255, 0)
        np.testing.assert_array_equal(out, expected)
        self.assertIs(result.run_state, RunState.ITERATION_LIMIT_REACHED)
        self.assertEqual(result.iterations, 6)

    def test_replace_value(self):
        arr = _cube()
        result, output = run_filter(
            get_plugin("confidence_connected"),
            VolumeDescriptor.from_array(arr),
            {"replace_value": 1, "iterations": 1},
            markers=[(8.0, 8.0, 8.0)],
        )
        self.assertTrue(result.succeeded, result.message)
        self.assertEqual(int(_array(output).sum()), 8 ** 3)

    def test_composite_matches_plain_output(self):
        arr = _cube(inside=100, outside=250, dtype=np.uint8)
        volume = VolumeDescriptor.from_array(arr)
        plugin = get_plugin("confidence_connected")

        _, plain = run_filter(plugin, volume, {}, markers=[(8.0, 8.0, 8.0)])
        result, dual = run_filter(plugin, volume, {"composite": "true"}, markers=[(8.0, 8.0, 8.0)])

        self.assertTrue(result.succeeded, result.message)
        out = view_volume(dual).array
        self.assertEqual(out.shape, (16, 16, 16, 2))
        np.testing.assert_array_equal(out[..., 0], arr)
        np.testing.assert_array_equal(out[..., 1], _array(plain))

    def test_composite_in_wide_input_kind(self):
        result, dual = run_filter(
            get_plugin("confidence_connected"),
            VolumeDescriptor.from_array(_cube()),
            {"composite": True},
            markers=[(8.0, 8.0, 8.0)],
        )
        self.assertTrue(result.succeeded, result.message)
        out = view_volume(dual).array
        self.assertEqual(out.dtype, np.int16)
        self.assertEqual(out[8, 8, 8, 1], 255)
        self.assertEqual(out[0, 0, 0, 1], 0)
        self.assertEqual(out[0, 0, 0, 0], 1000)

    def test_seed_outside_volume(self):
        result, _ = run_filter(
            get_plugin("confidence_connected"),
            VolumeDescriptor.from_array(_cube()),
            markers=[(40.0, 8.0, 8.0)],
        )
        self.assertIs(result.status, ExecutionStatus.PRECONDITION_ERROR)


class TestAntiAlias(unittest.TestCase):
    def test_sphere_output_spans_unsigned_range(self):
        volume = SyntheticVolumeLoader().load("sphere", shape=(16, 16, 16))
        result, output = run_filter(get_plugin("anti_alias"), volume, {"iterations": 5})

        self.assertTrue(result.succeeded, result.message)
        self.assertIn(result.run_state, (RunState.CONVERGED, RunState.ITERATION_LIMIT_REACHED))
        self.assertTrue(result.report.startswith("Total number of iterations = "))
        out = _array(output)
        self.assertEqual(out.dtype, np.uint8)
        self.assertEqual(out[8, 8, 8], 255)
        self.assertEqual(out[0, 0, 0], 0)
        boundary = out[8, 8, :]
        self.assertTrue(np.any((boundary > 0) & (boundary < 255)))

    def test_output_kind_is_uint8_for_float_input(self):
        arr = np.zeros((10, 10, 10), dtype=np.float32)
        arr[3:7, 3:7, 3:7] = 1.0
        decl_result, output = run_filter(get_plugin("anti_alias"), VolumeDescriptor.from_array(arr))
        self.assertTrue(decl_result.succeeded, decl_result.message)
        self.assertIs(output.kind, NumericKind.UINT8)


class TestGeodesicActiveContour(unittest.TestCase):
    def test_zero_speed_keeps_initial_model(self):
        model = np.zeros((12, 12, 12), dtype=np.uint8)
        model[4:8, 4:8, 4:8] = 200
        speed = VolumeDescriptor.from_array(np.zeros((12, 12, 12), dtype=np.float32))

        result, output = run_filter(
            get_plugin("geodesic_active_contour"),
            VolumeDescriptor.from_array(model),
            second_volume=speed,
        )

        self.assertTrue(result.succeeded, result.message)
        self.assertIs(result.run_state, RunState.CONVERGED)
        self.assertEqual(result.iterations, 1)
        np.testing.assert_array_equal(_array(output), np.where(model > 100, 255, 0))

    def test_second_input_dimensions_must_match(self):
        model = VolumeDescriptor.from_array(np.zeros((6, 6, 6), dtype=np.uint8))
        speed = VolumeDescriptor.from_array(np.ones((6, 6, 5), dtype=np.float32))
        result, _ = run_filter(get_plugin("geodesic_active_contour"), model, second_volume=speed)
        self.assertIs(result.status, ExecutionStatus.PRECONDITION_ERROR)


class TestGeodesicActiveContourModule(unittest.TestCase):
    def setUp(self):
        arr = np.zeros((24, 24, 24), dtype=np.float32)
        arr[6:18, 6:18, 6:18] = 100.0
        self.volume = VolumeDescriptor.from_array(arr)
        self.params = {"distance": 3, "max_iterations": 40}

    def test_contour_grows_from_seed(self):
        result, output = run_filter(
            get_plugin("geodesic_active_contour_module"), self.volume, self.params, markers=[(12.0, 12.0, 12.0)]
        )
        self.assertTrue(result.succeeded, result.message)
        out = _array(output)
        self.assertEqual(out.dtype, np.uint8)
        self.assertEqual(out[12, 12, 12], 255)
        self.assertEqual(out[0, 0, 0], 0)
        self.assertGreater(int(np.count_nonzero(out)), 1)
        self.assertIn("Total number of iterations", result.report)

    def test_composite_output(self):
        params = dict(self.params, composite=1)
        result, output = run_filter(
            get_plugin("geodesic_active_contour_module"), self.volume, params, markers=[(12.0, 12.0, 12.0)]
        )
        self.assertTrue(result.succeeded, result.message)
        out = view_volume(output).array
        self.assertEqual(out.dtype, np.float32)
        self.assertEqual(out.shape[3], 2)
        self.assertEqual(out[12, 12, 12, 0], 100.0)
        self.assertEqual(out[12, 12, 12, 1], 255.0)

    def test_equal_basin_and_border_is_rejected(self):
        result, _ = run_filter(
            get_plugin("geodesic_active_contour_module"),
            self.volume,
            {"basin_value": 2, "border_value": 2},
            markers=[(12.0, 12.0, 12.0)],
        )
        self.assertIs(result.status, ExecutionStatus.PRECONDITION_ERROR)


class TestIntensityWindowing(unittest.TestCase):
    def test_window_maps_onto_output_range_slab_by_slab(self):
        ramp = np.tile((np.arange(64) * 4).astype(np.uint8), (40, 2, 1))
        params = {"window_minimum": 50, "window_maximum": 150, "output_minimum": 0, "output_maximum": 255}

        result, output = run_filter(get_plugin("intensity_windowing"), VolumeDescriptor.from_array(ramp), params)

        self.assertTrue(result.succeeded, result.message)
        self.assertEqual(result.iterations, 2)
        self.assertIs(result.run_state, RunState.ITERATION_LIMIT_REACHED)
        out = _array(output)
        self.assertEqual(out[0, 0, 0], 0)
        self.assertEqual(out[0, 0, 12], 0)
        self.assertEqual(out[0, 0, 25], 128)
        self.assertEqual(out[39, 1, 40], 255)
        np.testing.assert_array_equal(out[0], out[39])

    def test_default_window_is_input_range(self):
        arr = np.array([[[10, 20, 30]]], dtype=np.int16)
        result, output = run_filter(get_plugin("intensity_windowing"), VolumeDescriptor.from_array(arr))
        self.assertTrue(result.succeeded, result.message)
        np.testing.assert_array_equal(_array(output), [[[-32768, -1, 32767]]])

    def test_inverted_window_is_precondition_error(self):
        arr = np.zeros((2, 2, 2), dtype=np.uint8)
        result, _ = run_filter(
            get_plugin("intensity_windowing"),
            VolumeDescriptor.from_array(arr),
            {"window_minimum": 10, "window_maximum": 5},
        )
        self.assertIs(result.status, ExecutionStatus.PRECONDITION_ERROR)

    def test_float64_default_bounds_stay_finite(self):
        arr = np.arange(5.0).reshape(1, 1, 5)
        result, output = run_filter(get_plugin("intensity_windowing"), VolumeDescriptor.from_array(arr))
        self.assertTrue(result.succeeded, result.message)
        out = _array(output)
        f64 = np.finfo(np.float64)
        self.assertTrue(np.all(np.isfinite(out)))
        np.testing.assert_array_equal(out[0, 0, [0, 2, 4]], [f64.min, 0.0, f64.max])

    def test_constant_input_with_default_window(self):
        arr = np.full((2, 2, 2), 5, dtype=np.uint8)
        result, output = run_filter(get_plugin("intensity_windowing"), VolumeDescriptor.from_array(arr))
        self.assertTrue(result.succeeded, result.message)
        np.testing.assert_array_equal(_array(output), 0)


class TestSigmoid(unittest.TestCase):
    def test_alpha_beta_are_normalized_to_input_range(self):
        ramp = np.tile(np.arange(101, dtype=np.float32), (2, 2, 1))
        params = {"alpha": 5.0, "beta": 0.0, "output_minimum": 0.0, "output_maximum": 1.0}

        result, output = run_filter(get_plugin("sigmoid"), VolumeDescriptor.from_array(ramp), params)

        self.assertTrue(result.succeeded, result.message)
        out = _array(output)
        self.assertEqual(out.dtype, np.float32)
        expected = 1.0 / (1.0 + np.exp(-(np.arange(101) - 50.0) / 500.0))
        np.testing.assert_allclose(out[0, 0], expected, rtol=1e-5)
        self.assertAlmostEqual(float(out[1, 1, 50]), 0.5, places=6)

    def test_float64_default_bounds_stay_finite(self):
        arr = np.linspace(0.0, 10.0, 11).reshape(1, 1, 11)
        result, output = run_filter(get_plugin("sigmoid"), VolumeDescriptor.from_array(arr))
        self.assertTrue(result.succeeded, result.message)
        out = _array(output)
        self.assertTrue(np.all(np.isfinite(out)))
        self.assertEqual(out[0, 0, 5], 0.0)
        self.assertTrue(np.all(np.diff(out[0, 0]) > 0))

    def test_zero_alpha_is_precondition_error(self):
        arr = np.arange(8, dtype=np.uint8).reshape(2, 2, 2)
        result, _ = run_filter(get_plugin("sigmoid"), VolumeDescriptor.from_array(arr), {"alpha": 0})
        self.assertIs(result.status, ExecutionStatus.PRECONDITION_ERROR)

    def test_constant_input_is_pipeline_error(self):
        arr = np.full((2, 2, 2), 5, dtype=np.uint8)
        result, _ = run_filter(get_plugin("sigmoid"), VolumeDescriptor.from_array(arr))
        self.assertIs(result.status, ExecutionStatus.PIPELINE_ERROR)


@pytest.mark.parametrize("key", ["gradient_magnitude", "intensity_windowing", "sigmoid", "anisotropic_diffusion"])
def test_multi_component_plugins_preserve_component_count(key):
    arr = np.random.default_rng(1).integers(0, 255, size=(4, 5, 6, 3)).astype(np.uint8)
    result, output = run_filter(get_plugin(key), VolumeDescriptor.from_array(arr))
    assert result.succeeded, result.message
    assert output.components == 3
    assert output.kind is NumericKind.UINT8
