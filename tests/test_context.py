"""Tests of the CPU model context lifecycle."""

import numpy as np
import pytest

from vispredict import AllocationError, CopyError, DeviceError, SynchronizeError
from vispredict.components import PointComponents
from vispredict.core.beams import BeamTables
from vispredict.cpu import CPUModelContext, CPUSkyModeller
from vispredict.jones import identity
from vispredict.shapelets import ShapeletBasis


def _inputs(nbl=3, nfreq=2):
    rng = np.random.default_rng(0)
    uvws = rng.normal(size=(nbl, 3)) * 100
    freqs = np.linspace(150e6, 160e6, nfreq)
    vis = np.zeros((nbl, nfreq, 2, 2), dtype=np.complex64)
    return uvws, freqs, vis


def test_create_uploads_inputs():
    uvws, freqs, vis = _inputs()
    with CPUModelContext.create(uvws, freqs, vis) as ctx:
        assert ctx.num_baselines == 3
        assert ctx.num_freqs == 2
        assert ctx.num_vis == 6
        assert ctx.num_tiles == 3
        assert ctx.precision == 2
        assert ctx.sbf_n == ctx.sbf_l == 0
        assert not ctx.use_beam
        np.testing.assert_array_equal(ctx.d_uvws, uvws)
        assert ctx.d_antpairs.tolist() == [[0, 1], [0, 2], [1, 2]]
        assert ctx.d_vis.dtype == np.complex64
        assert ctx.d_vis is not vis


def test_single_precision_copies():
    uvws, freqs, vis = _inputs()
    with CPUModelContext.create(uvws, freqs, vis, precision=1) as ctx:
        assert ctx.d_uvws.dtype == np.float32
        assert ctx.d_freqs.dtype == np.float32
        assert ctx.d_vis.dtype == np.complex64


def test_round_trip():
    uvws, freqs, vis = _inputs()
    vis[:] = (np.arange(vis.size) + 1j * np.arange(vis.size)[::-1]).reshape(vis.shape)
    original = vis.copy()

    with CPUModelContext.create(uvws, freqs, vis) as ctx:
        vis[:] = 0
        out = ctx.read_back_visibilities()

    assert out is vis
    np.testing.assert_array_equal(vis, original)


def test_clear_and_read_back_are_idempotent():
    uvws, freqs, vis = _inputs()
    vis[:] = 1 + 1j
    with CPUModelContext.create(uvws, freqs, vis) as ctx:
        ctx.clear_visibilities()
        ctx.clear_visibilities()
        first = ctx.read_back_visibilities().copy()
        second = ctx.read_back_visibilities()
        assert not np.any(first)
        np.testing.assert_array_equal(first, second)


def test_destroy_twice_is_a_noop():
    uvws, freqs, vis = _inputs()
    ctx = CPUModelContext.create(uvws, freqs, vis)
    ctx.destroy()
    assert ctx.destroyed
    assert ctx.d_vis is None
    ctx.destroy()
    with ctx:
        pass
    assert ctx.destroyed


def test_failed_creation_releases_buffers(monkeypatch):
    uvws, freqs, vis = _inputs()
    created = []
    calls = []
    original = CPUModelContext._copy_to_device

    def flaky_copy(self, dst, src):
        created.append(self)
        calls.append(dst.shape)
        if len(calls) == 3:
            raise CopyError("injected")
        original(self, dst, src)

    monkeypatch.setattr(CPUModelContext, "_copy_to_device", flaky_copy)

    with pytest.raises(DeviceError, match="injected"):
        CPUModelContext.create(uvws, freqs, vis)

    ctx = created[0]
    assert ctx.destroyed
    assert ctx._allocated == []
    assert ctx.d_uvws is None and ctx.d_freqs is None and ctx.d_antpairs is None


def test_unmapped_error_during_creation_releases_buffers(monkeypatch):
    uvws, freqs, vis = _inputs()
    created = []
    original = CPUModelContext._copy_to_device

    def broken_copy(self, dst, src):
        created.append(self)
        if len(created) == 2:
            raise RuntimeError("unexpected failure")
        original(self, dst, src)

    monkeypatch.setattr(CPUModelContext, "_copy_to_device", broken_copy)

    with pytest.raises(RuntimeError, match="unexpected failure"):
        CPUModelContext.create(uvws, freqs, vis)

    ctx = created[0]
    assert ctx.destroyed
    assert ctx._allocated == []
    assert ctx.d_uvws is None and ctx.d_freqs is None


def test_interrupted_creation_releases_buffers(monkeypatch):
    uvws, freqs, vis = _inputs()
    created = []
    original = CPUModelContext._copy_to_device

    def interrupted_copy(self, dst, src):
        created.append(self)
        if len(created) == 3:
            raise KeyboardInterrupt
        original(self, dst, src)

    monkeypatch.setattr(CPUModelContext, "_copy_to_device", interrupted_copy)

    with pytest.raises(KeyboardInterrupt):
        CPUModelContext.create(uvws, freqs, vis)

    assert created[0].destroyed
    assert created[0]._allocated == []


def test_allocation_error_releases_earlier_buffers(monkeypatch):
    uvws, freqs, vis = _inputs()
    created = []
    original = CPUModelContext._allocate

    def failing_allocate(self, shape, dtype):
        created.append(self)
        if len(created) == 3:
            raise AllocationError("out of memory")
        return original(self, shape, dtype)

    monkeypatch.setattr(CPUModelContext, "_allocate", failing_allocate)

    with pytest.raises(AllocationError, match="out of memory"):
        CPUModelContext.create(uvws, freqs, vis)

    ctx = created[0]
    assert ctx.destroyed
    assert ctx._allocated == []
    assert ctx.d_uvws is None and ctx.d_freqs is None
    assert not hasattr(ctx, "d_antpairs")


def test_numpy_memory_error_becomes_allocation_error(monkeypatch):
    uvws, freqs, vis = _inputs()
    ctx = CPUModelContext.create(uvws, freqs, vis)

    def no_memory(*args, **kwargs):
        raise MemoryError

    monkeypatch.setattr(np, "empty", no_memory)
    with pytest.raises(AllocationError):
        ctx.to_device(np.zeros(3), np.float64)


def test_failed_read_back_leaves_host_buffer_untouched():
    uvws, freqs, vis = _inputs()
    vis[:] = 2 - 3j
    ctx = CPUModelContext.create(uvws, freqs, vis)
    ctx.clear_visibilities()
    ctx.d_vis = np.zeros((7, 2, 2, 2), dtype=np.complex64)

    with pytest.raises(CopyError):
        ctx.read_back_visibilities()
    assert np.all(vis == 2 - 3j)
    ctx.destroy()


def test_synchronize_error_propagates_from_model_timestep(monkeypatch):
    uvws, freqs, vis = _inputs()

    def failing_sync(self):
        raise SynchronizeError("device fault")

    with CPUModelContext.create(uvws, freqs, vis) as ctx:
        modeller = CPUSkyModeller(ctx)
        monkeypatch.setattr(CPUModelContext, "synchronize", failing_sync)
        with pytest.raises(SynchronizeError, match="device fault"):
            modeller.model_timestep(
                points=PointComponents(np.array([[0.0, 0.0, 1.0]]), identity((2, 1)))
            )
        with pytest.raises(SynchronizeError):
            ctx.read_back_visibilities()

    assert ctx.destroyed


def test_copy_error_is_wrapped():
    uvws, freqs, vis = _inputs()
    ctx = CPUModelContext.create(uvws, freqs, vis)
    with pytest.raises(CopyError):
        ctx._copy_to_device(ctx.d_uvws, np.zeros((7, 3)))


@pytest.mark.parametrize(
    "kwargs,match",
    [
        ({"precision": 3}, "precision"),
        ({"uvws": np.zeros((3, 2))}, "uvws"),
        ({"freqs": np.zeros((2, 1))}, "freqs"),
        ({"vis": np.zeros((3, 2, 2, 2), dtype=np.complex128)}, "complex64"),
        ({"vis": np.zeros((3, 3, 2, 2), dtype=np.complex64)}, "vis"),
        ({"vis": np.zeros((2, 3, 2, 2), dtype=np.complex64).transpose(1, 0, 2, 3)}, "contiguous"),
        ({"antpairs": np.array([[0, 1], [0, 2]])}, "antpairs"),
        ({"antpairs": np.array([[0, 1], [0, 2], [1, 5]]), "num_tiles": 4}, "tiles"),
    ],
)
def test_bad_inputs(kwargs, match):
    uvws, freqs, vis = _inputs()
    kw = {"uvws": uvws, "freqs": freqs, "vis": vis} | kwargs
    with pytest.raises(ValueError, match=match):
        CPUModelContext.create(**kw)


def test_non_triangular_baselines_need_antpairs():
    uvws, freqs, vis = _inputs(nbl=4)
    with pytest.raises(ValueError, match="antpairs"):
        CPUModelContext.create(uvws, freqs, vis)

    antpairs = np.array([[0, 1], [1, 2], [2, 3], [3, 4]])
    with CPUModelContext.create(uvws, freqs, vis, antpairs=antpairs) as ctx:
        assert ctx.num_tiles == 5


def test_shapelet_basis_is_uploaded():
    uvws, freqs, vis = _inputs()
    basis = ShapeletBasis(values=np.arange(12.0).reshape(2, 6), sbf_c=2.0, sbf_dx=0.1)
    with CPUModelContext.create(uvws, freqs, vis, shapelet_basis=basis, precision=1) as ctx:
        assert (ctx.sbf_n, ctx.sbf_l, ctx.sbf_c, ctx.sbf_dx) == (2, 6, 2.0, 0.1)
        assert ctx.d_shapelet_basis.dtype == np.float32
        np.testing.assert_array_equal(ctx.d_shapelet_basis, basis.values)


def test_beam_tables_are_uploaded():
    uvws, freqs, vis = _inputs()
    beam = BeamTables(
        jones_map=[[0], [1]],
        beam_jones=np.stack([np.eye(2), 2 * np.eye(2)]),
        norm_jones=np.broadcast_to(np.eye(2), (2, 1, 2, 2)),
        tile_map=[0, 1, 1],
        freq_map=[0, 0],
        coeffs=b"\x01\x02\x03",
    )
    with CPUModelContext.create(uvws, freqs, vis, beam=beam) as ctx:
        assert ctx.use_beam
        assert ctx.d_tile_map.tolist() == [0, 1, 1]
        assert ctx.d_freq_map.tolist() == [0, 0]
        assert ctx.d_jones_map.dtype == np.int64
        assert ctx.d_beam_coeffs.tolist() == [1, 2, 3]
        assert ctx.memory_estimate()["beam_coeffs"] == 3


class TestBeamTables:
    def test_default_maps(self):
        beam = BeamTables(
            jones_map=np.zeros((3, 2)),
            beam_jones=np.eye(2)[None],
            norm_jones=np.broadcast_to(np.eye(2), (3, 2, 2, 2)),
        )
        tile_map, freq_map = beam.resolve_maps(3, 2)
        assert tile_map.tolist() == [0, 1, 2]
        assert freq_map.tolist() == [0, 1]

        with pytest.raises(ValueError, match="tile_map must be given"):
            beam.resolve_maps(4, 2)

    def test_bad_maps(self):
        beam = BeamTables.identity(3, 2)
        assert beam.resolve_maps(3, 2)[0].tolist() == [0, 0, 0]
        with pytest.raises(ValueError, match=r"tile_map must have shape \(4,\)"):
            beam.resolve_maps(4, 2)

        beam.freq_map = np.array([0, 1])
        with pytest.raises(ValueError, match="freq_map contains"):
            beam.resolve_maps(3, 2)

    def test_validation(self):
        with pytest.raises(ValueError, match="jones_map must have shape"):
            BeamTables(np.zeros(3), np.eye(2)[None], np.zeros((3, 2, 2)))
        with pytest.raises(ValueError, match="outside of beam_jones"):
            BeamTables(np.ones((1, 1)), np.eye(2)[None], np.zeros((1, 1, 2, 2)))
        with pytest.raises(ValueError, match="norm_jones"):
            BeamTables(np.zeros((1, 1)), np.eye(2)[None], np.zeros((1, 2, 2, 2)))
        with pytest.raises(ValueError, match="beam_jones"):
            BeamTables(np.zeros((1, 1)), np.eye(2), np.zeros((1, 1, 2, 2)))
