import unittest
from dataclasses import replace
from unittest.mock import MagicMock

import numpy as np

from boxblur.domain.errors import BuildError, ComputeError, ConfigError
from boxblur.domain.interfaces import LaunchContext
from boxblur.domain.models import Grid, GroupShape, Mask, Variant
from boxblur.kernel.system.config import APP_CONFIG
from boxblur.services.rendering.cpu_engine import CPUEngine
from boxblur.services.rendering.orchestrator import LaunchOrchestrator, create_backend, run_box_blur


class FailingBackend:
    name = "failing"
    is_available = True

    def __init__(self, exc: Exception) -> None:
        self.exc = exc
        self.calls = 0

    def launch(self, context: LaunchContext) -> np.ndarray:
        self.calls += 1
        raise self.exc


class TestLaunchOrchestrator(unittest.TestCase):
    def setUp(self) -> None:
        self.config = replace(APP_CONFIG, backend="cpu")
        self.grid = Grid(width=4, height=4, samples=np.arange(16, dtype=np.int32))
        self.mask = Mask.uniform(1)

    def test_scenario_end_to_end(self) -> None:
        out = LaunchOrchestrator(CPUEngine(), self.config).run(self.grid, self.mask, GroupShape(2, 2), Variant.TILED)
        self.assertEqual((out.width, out.height), (4, 4))
        self.assertEqual(out.samples.shape, (16,))
        self.assertAlmostEqual(float(out.as_array()[1, 1]), 5.0)
        self.assertAlmostEqual(float(out.as_array()[0, 0]), 2.5)
        self.assertEqual(out.source_dtype, np.int32)

    def test_variants_agree(self) -> None:
        orch = LaunchOrchestrator(CPUEngine(), self.config)
        rng = np.random.default_rng(5)
        grid = Grid.from_array(rng.integers(0, 255, size=(8, 8), dtype=np.int32))
        mask = Mask(left=2, up=1, right=1, down=2)
        tiled = orch.run(grid, mask, GroupShape(4, 4), "tiled")
        naive = orch.run(grid, mask, GroupShape(4, 4), "naive")
        np.testing.assert_array_equal(tiled.samples, naive.samples)

    def test_naive_default_group_shape(self) -> None:
        out = LaunchOrchestrator(CPUEngine(), self.config).run(self.grid, self.mask, None, Variant.NAIVE)
        self.assertAlmostEqual(float(out.as_array()[0, 0]), 2.5)

    def test_tiled_requires_group_shape(self) -> None:
        with self.assertRaises(ConfigError):
            LaunchOrchestrator(CPUEngine(), self.config).run(self.grid, self.mask, None, Variant.TILED)

    def test_unknown_variant(self) -> None:
        with self.assertRaises(ConfigError):
            LaunchOrchestrator(CPUEngine(), self.config).run(self.grid, self.mask, GroupShape(2, 2), "separable")

    def test_config_errors_before_launch(self) -> None:
        backend = MagicMock()
        orch = LaunchOrchestrator(backend, self.config)
        grid = Grid(width=10, height=10, samples=np.zeros(100, dtype=np.int32))

        with self.assertRaises(ConfigError):
            orch.run(grid, self.mask, GroupShape(4, 4))
        with self.assertRaises(ConfigError):
            orch.run(grid, Mask(left=10), GroupShape(5, 5))
        backend.launch.assert_not_called()

    def test_thread_and_tile_budgets(self) -> None:
        grid = Grid(width=16, height=16, samples=np.zeros(256, dtype=np.int32))
        small = replace(self.config, max_threads_per_group=4)
        with self.assertRaises(ConfigError):
            LaunchOrchestrator(CPUEngine(), small).run(grid, self.mask, GroupShape(4, 4))

        tight = replace(self.config, max_tile_bytes=64)
        with self.assertRaises(ConfigError):
            LaunchOrchestrator(CPUEngine(), tight).run(grid, self.mask, GroupShape(4, 4), Variant.TILED)
        # Naive has no scratch tile
        LaunchOrchestrator(CPUEngine(), tight).run(grid, self.mask, GroupShape(4, 4), Variant.NAIVE)

    def test_backend_failure_wrapped(self) -> None:
        backend = FailingBackend(RuntimeError("device lost"))
        orch = LaunchOrchestrator(backend, self.config)
        with self.assertRaises(ComputeError) as ctx:
            orch.run(self.grid, self.mask, GroupShape(2, 2))
        self.assertIn("device lost", str(ctx.exception))
        self.assertEqual(ctx.exception.params["backend"], "failing")
        self.assertEqual(ctx.exception.params["width"], 4)
        # No retry
        self.assertEqual(backend.calls, 1)

    def test_typed_errors_pass_through(self) -> None:
        orch = LaunchOrchestrator(FailingBackend(BuildError("bad shader", log="line 3")), self.config)
        with self.assertRaises(BuildError) as ctx:
            orch.run(self.grid, self.mask, GroupShape(2, 2))
        self.assertEqual(ctx.exception.log, "line 3")

    def test_wrong_output_shape(self) -> None:
        backend = MagicMock()
        backend.name = "broken"
        backend.launch.return_value = np.zeros((2, 2), dtype=np.float32)
        with self.assertRaises(ComputeError):
            LaunchOrchestrator(backend, self.config).run(self.grid, self.mask, GroupShape(2, 2))

    def test_input_not_mutated(self) -> None:
        before = self.grid.samples.copy()
        LaunchOrchestrator(CPUEngine(), self.config).run(self.grid, self.mask, GroupShape(2, 2))
        np.testing.assert_array_equal(self.grid.samples, before)

    def test_run_box_blur_entry_point(self) -> None:
        out = run_box_blur(self.grid, self.mask, GroupShape(2, 2), Variant.TILED, backend=CPUEngine())
        self.assertEqual(out.quantized().dtype, np.int32)
        self.assertEqual(int(out.quantized()[5]), 5)

    def test_identity_keeps_large_int32(self) -> None:
        samples = np.array([16777217, 2147483647, -2147483647, 123456789], dtype=np.int32)
        grid = Grid(width=2, height=2, samples=samples)
        for variant in (Variant.TILED, Variant.NAIVE):
            out = run_box_blur(grid, Mask(), GroupShape(1, 1), variant, backend=CPUEngine())
            np.testing.assert_array_equal(out.quantized(), samples)

    def test_accepts_sequence_mask_and_group_shape(self) -> None:
        out = run_box_blur(self.grid, [1, 1, 1, 1], [2, 2], "tiled", backend=CPUEngine())
        self.assertAlmostEqual(float(out.as_array()[1, 1]), 5.0)
        self.assertAlmostEqual(float(out.as_array()[0, 0]), 2.5)
        out = run_box_blur(self.grid, np.array([1, 1, 1, 1]), (2, 2), "naive", backend=CPUEngine())
        self.assertAlmostEqual(float(out.as_array()[0, 0]), 2.5)

    def test_malformed_mask_and_group_shape(self) -> None:
        backend = MagicMock()
        orch = LaunchOrchestrator(backend, self.config)
        for mask, shape in (
            ([1, 1, 1], [2, 2]),
            ([1, 1, 1, -1], [2, 2]),
            (["a", 1, 1, 1], [2, 2]),
            (1, [2, 2]),
            ([1, 1, 1, 1], [2]),
            ([1, 1, 1, 1], "2x2"),
        ):
            with self.assertRaises(ConfigError):
                orch.run(self.grid, mask, shape)
        backend.launch.assert_not_called()

    def test_accepts_2d_array(self) -> None:
        arr = np.arange(16, dtype=np.uint8).reshape(4, 4)
        out = LaunchOrchestrator(CPUEngine(), self.config).run(arr, self.mask, GroupShape(4, 4))
        self.assertAlmostEqual(float(out.as_array()[0, 0]), 2.5)
        self.assertEqual(out.source_dtype, np.uint8)

    def test_debug_dump(self) -> None:
        with self.assertLogs("boxblur.services.rendering.orchestrator", level="DEBUG") as logs:
            LaunchOrchestrator(CPUEngine(), self.config).run(self.grid, self.mask, GroupShape(2, 2))
        dump = "\n".join(logs.output)
        self.assertIn("Original data:", dump)
        self.assertIn("2.50", dump)

    def test_backend_registry(self) -> None:
        self.assertIsInstance(create_backend("CPU"), CPUEngine)
        with self.assertRaises(ConfigError):
            create_backend("opencl")


if __name__ == "__main__":
    unittest.main()
