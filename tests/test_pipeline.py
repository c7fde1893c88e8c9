"""Tests for satfilter.pipeline module."""

import numpy as np
import pytest

from satfilter.accuracy import check_reference
from satfilter.border import BorderType
from satfilter.errors import AllocationError, ConfigurationError
from satfilter.pipeline import (
    PassStage,
    RecursiveFilterPipeline,
    recursive_filter_2d,
    summed_area_table,
)
from satfilter.reference import reference_recursive_filter, reference_sat
from satfilter.tiles import TileGrid
from satfilter.weights import SAT_WEIGHTS


class TestKnownScenarios:
    """Exact results on small images."""

    def test_single_pixel(self):
        img = np.array([[0.75]], dtype=np.float32)
        out = summed_area_table(img, backend="numba")
        assert out.shape == (1, 1)
        assert out[0, 0] == np.float32(0.75)
        assert check_reference(out, reference_sat(img), 1, 1) == (0.0, 0.0)

    def test_all_ones(self):
        img = np.ones((4, 4), dtype=np.float32)
        out = summed_area_table(img, backend="numba")
        r, c = np.indices((4, 4))
        np.testing.assert_array_equal(out, (r + 1) * (c + 1))
        assert check_reference(out, reference_sat(img), 4, 4) == (0.0, 0.0)

    def test_all_ones_multi_tile(self):
        img = np.ones((37, 21), dtype=np.float64)
        out = summed_area_table(img, tile_size=8, backend="numba", dtype=np.float64)
        r, c = np.indices(img.shape)
        np.testing.assert_array_equal(out, (r + 1) * (c + 1))


class TestAgainstReference:
    """Tiled engine against the sequential reference engine."""

    @pytest.mark.parametrize("shape", [(1, 1), (1, 100), (100, 1), (64, 64), (97, 131)])
    @pytest.mark.parametrize("strategy", ["sequential", "scan"])
    def test_sat_float64(self, shape, strategy, rng):
        img = rng.random(shape)
        out = summed_area_table(img, backend="numba", carry_strategy=strategy,
                                dtype=np.float64)
        np.testing.assert_allclose(out, reference_sat(img), rtol=1e-12)

    def test_sat_float32_error_bound(self, rng):
        H, W = 300, 257
        img = rng.random((H, W), dtype=np.float32)
        out = summed_area_table(img, backend="numba")
        assert out.dtype == np.float32
        max_abs, max_rel = check_reference(out, reference_sat(img), W, H)
        assert max_rel < 1e-4
        assert max_abs < 1e-4 * float(H * W)

    @pytest.mark.parametrize("btype", list(BorderType))
    @pytest.mark.parametrize("border", [1, 2])
    def test_border_types(self, btype, border, sample_image):
        img = sample_image.astype(np.float64)
        out = summed_area_table(img, border=border, btype=btype, tile_size=16,
                                backend="numba", dtype=np.float64)
        expected = reference_sat(img, border=border, btype=btype, tile_size=16)
        np.testing.assert_allclose(out, expected, rtol=1e-11)

    @pytest.mark.parametrize("weights", [(1.0, -0.5), (0.8, -1.2, 0.36)])
    def test_higher_order(self, weights, rng):
        img = rng.random((45, 50))
        out = recursive_filter_2d(img, weights, tile_size=8, backend="numba",
                                  dtype=np.float64)
        expected = reference_recursive_filter(img, weights)
        np.testing.assert_allclose(out, expected, rtol=1e-10, atol=1e-12)

    def test_higher_order_with_border(self, rng):
        img = rng.random((30, 20))
        weights = (1.0, -0.7, 0.1)
        out = recursive_filter_2d(img, weights, border=1, btype="reflect", tile_size=8,
                                  backend="numba", carry_strategy="scan", dtype=np.float64)
        expected = reference_recursive_filter(img, weights, border=1, btype="reflect",
                                              tile_size=8)
        np.testing.assert_allclose(out, expected, rtol=1e-10, atol=1e-12)


class TestBorderExtent:
    """Border extent with constant and zero-extended images."""

    def test_zero_border_matches_no_border(self, sample_image):
        img = sample_image.astype(np.float64)
        no_border = summed_area_table(img, tile_size=16, backend="numba", dtype=np.float64)
        bordered = summed_area_table(img, border=2, btype="zero", tile_size=16,
                                     backend="numba", dtype=np.float64)
        np.testing.assert_allclose(bordered, no_border, rtol=1e-12)

    def test_constant_image_clamp(self):
        """Clamp extends a constant image with the same constant."""
        value, T, b = 3.0, 8, 2
        img = np.full((13, 10), value)
        out = summed_area_table(img, border=b, btype="clamp", tile_size=T,
                                backend="numba", dtype=np.float64)
        expected = reference_sat(img, border=b, btype="clamp", tile_size=T)
        np.testing.assert_array_equal(out, expected)
        # Interior SAT is that of the constant image grown by b*T on the leading sides
        r, c = np.indices(img.shape)
        np.testing.assert_array_equal(out, value * (r + 1 + b * T) * (c + 1 + b * T))


class TestPipelineBehaviour:
    """Ownership, staging and configuration."""

    def test_input_not_modified(self, sample_image):
        before = sample_image.copy()
        out = summed_area_table(sample_image, backend="numba")
        np.testing.assert_array_equal(sample_image, before)
        assert not np.shares_memory(out, sample_image)

    def test_reusable(self, rng):
        pipeline = RecursiveFilterPipeline(tile_size=8, backend="numba", dtype=np.float64)
        a = rng.random((20, 20))
        b = rng.random((11, 30))
        np.testing.assert_allclose(pipeline(a), reference_sat(a), rtol=1e-12)
        np.testing.assert_allclose(pipeline(b), reference_sat(b), rtol=1e-12)

    def test_pass_sequence(self):
        assert PassStage.ROW_PASS.next() is PassStage.COLUMN_PASS
        assert PassStage.COLUMN_PASS.next() is PassStage.DONE

    def test_auto_backend_without_cuda(self, force_cpu):
        assert RecursiveFilterPipeline(backend="auto").backend == "numba"

    @pytest.mark.parametrize("kwargs", [
        {"tile_size": 0},
        {"tile_size": 2, "weights": (1.0, -0.5, 0.2, 0.1)},
        {"border": -1},
        {"btype": "mirror"},
        {"backend": "opencl"},
        {"carry_strategy": "tree"},
        {"dtype": np.int32},
        {"dtype": np.float16},
        {"dtype": np.longdouble},
        {"dtype": "not-a-dtype"},
        {"weights": (1.0,)},
    ])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ConfigurationError):
            RecursiveFilterPipeline(**kwargs)

    def test_rejects_non_2d(self):
        with pytest.raises(ConfigurationError):
            summed_area_table(np.ones((2, 3, 4)), backend="numba")


class TestAllocationFailure:
    """Out-of-memory conditions surface as AllocationError with the cause chained."""

    @staticmethod
    def _out_of_memory(*args, **kwargs):
        raise MemoryError("Unable to allocate array")

    def test_block_buffer(self, monkeypatch, sample_image):
        monkeypatch.setattr(TileGrid, "gather", self._out_of_memory)
        with pytest.raises(AllocationError) as exc:
            summed_area_table(sample_image, backend="numba")
        assert isinstance(exc.value.__cause__, MemoryError)

    def test_transposed_blocks(self, monkeypatch, sample_image):
        import satfilter.pipeline as pipeline

        monkeypatch.setattr(pipeline, "transpose_blocks", self._out_of_memory)
        with pytest.raises(AllocationError) as exc:
            summed_area_table(sample_image, backend="numba")
        assert isinstance(exc.value.__cause__, MemoryError)

    def test_is_memory_error(self, monkeypatch, sample_image):
        monkeypatch.setattr(TileGrid, "gather", self._out_of_memory)
        with pytest.raises(MemoryError):
            summed_area_table(sample_image, backend="numba")


class TestTorchBackend:
    """Torch stages agree with the reference (CPU device when no CUDA)."""

    @pytest.mark.parametrize("strategy", ["sequential", "scan"])
    def test_sat(self, strategy, sample_image):
        pytest.importorskip("torch")
        img = sample_image.astype(np.float64)
        out = summed_area_table(img, tile_size=16, backend="torch", carry_strategy=strategy,
                                dtype=np.float64)
        np.testing.assert_allclose(out, reference_sat(img), rtol=1e-10)

    def test_border_and_order(self, rng):
        pytest.importorskip("torch")
        img = rng.random((25, 40))
        weights = (0.8, -1.2, 0.36)
        out = recursive_filter_2d(img, weights, border=1, btype="repeat", tile_size=8,
                                  backend="torch", dtype=np.float64)
        expected = reference_recursive_filter(img, weights, border=1, btype="repeat",
                                              tile_size=8)
        np.testing.assert_allclose(out, expected, rtol=1e-9, atol=1e-12)

    def test_float32_dtype_preserved(self, sample_image):
        pytest.importorskip("torch")
        out = summed_area_table(sample_image, backend="torch")
        assert out.dtype == np.float32

    def test_cpu_allocator_failure(self, monkeypatch, sample_image):
        torch = pytest.importorskip("torch")

        def exhausted(*args, **kwargs):
            raise RuntimeError("DefaultCPUAllocator: can't allocate memory: you tried to allocate 8 GB")

        monkeypatch.setattr(torch, "as_tensor", exhausted)
        with pytest.raises(AllocationError) as exc:
            summed_area_table(sample_image, backend="torch")
        assert isinstance(exc.value.__cause__, RuntimeError)

    def test_other_runtime_errors_propagate(self, monkeypatch, sample_image):
        torch = pytest.importorskip("torch")

        def broken(*args, **kwargs):
            raise RuntimeError("CUDA error: device-side assert triggered")

        monkeypatch.setattr(torch, "as_tensor", broken)
        with pytest.raises(RuntimeError) as exc:
            summed_area_table(sample_image, backend="torch")
        assert not isinstance(exc.value, AllocationError)

    def test_transpose_allocation_failure(self):
        pytest.importorskip("torch")
        from satfilter.gpu import TorchEngine

        class Exhausted:
            shape = (3, 2, 16, 16)

            def permute(self, *dims):
                raise RuntimeError("DefaultCPUAllocator: can't allocate memory")

        engine = TorchEngine(SAT_WEIGHTS, np.ones((16, 1)), np.ones((1, 1)))
        with pytest.raises(AllocationError):
            engine.transpose(Exhausted())

    def test_unsupported_dtype_rejected(self):
        pytest.importorskip("torch")
        from satfilter.gpu import TorchEngine

        engine = TorchEngine(SAT_WEIGHTS, np.ones((4, 1)), np.ones((1, 1)))
        with pytest.raises(ConfigurationError):
            engine.upload(np.ones((1, 1, 4, 4), dtype=np.float16))
