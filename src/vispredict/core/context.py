"""Base class for the device-resident model context."""

from __future__ import annotations

import logging
import numpy as np
from abc import ABC, abstractmethod

from .._utils import estimate_context_memory, get_dtypes, human_readable_size
from ..coordinates import cross_correlation_antpairs, num_tiles_from_baselines
from ..jones import JONES_F32
from ..shapelets import ShapeletBasis
from . import _validate_inputs
from .beams import BeamTables

logger = logging.getLogger(__name__)


class ModelContext(ABC):
    """
    Abstract base class for the per-timestep device state.

    A context owns copies of the baseline geometry, frequencies, shapelet
    basis table, beam tables and a complex64 visibility accumulation buffer,
    all resident on the compute device. Instantiate with :meth:`create`, which
    allocates and uploads everything or cleans up and raises.

    Parameters
    ----------
    uvws
        Baseline coordinates [metres], shape ``(NBLS, 3)``.
    freqs
        Frequencies [Hz], shape ``(NFREQS,)``.
    vis
        Host visibility buffer, complex64 with shape ``(NBLS, NFREQS, 2, 2)``.
        Read-back copies the device accumulation into this array in place.
    shapelet_basis
        The shapelet basis table. If None, an empty table is used and shapelet
        components contribute nothing.
    beam
        Beam tables. If None, no beam correction is applied.
    num_tiles
        Number of tiles. Inferred from ``antpairs`` (or the number of
        baselines) if not given.
    antpairs
        Tile indices of each baseline, shape ``(NBLS, 2)``. Defaults to all
        cross-correlations ``i < j``.
    precision
        One of (1, 2). Single (1) or double (2) precision for the device copies
        of the inputs and for accumulation.
    """

    def __init__(
        self,
        uvws: np.ndarray,
        freqs: np.ndarray,
        vis: np.ndarray,
        shapelet_basis: ShapeletBasis | None = None,
        beam: BeamTables | None = None,
        num_tiles: int | None = None,
        antpairs: np.ndarray | None = None,
        precision: int = 2,
    ):
        uvws = np.asarray(uvws)
        freqs = np.asarray(freqs)
        self.num_baselines, self.num_freqs = _validate_inputs(
            precision, uvws, freqs, vis
        )
        self.precision = precision
        self.rtype, self.ctype = get_dtypes(precision)

        self.uvws = uvws
        self.freqs = freqs
        self.host_vis = vis

        if antpairs is None:
            if num_tiles is None:
                num_tiles = num_tiles_from_baselines(self.num_baselines)
            antpairs = cross_correlation_antpairs(num_tiles)
        antpairs = np.ascontiguousarray(antpairs, dtype=np.int32)
        if antpairs.shape != (self.num_baselines, 2):
            raise ValueError(
                f"antpairs must have shape ({self.num_baselines}, 2), got {antpairs.shape}"
            )
        if num_tiles is None:
            num_tiles = int(antpairs.max()) + 1 if antpairs.size else 0
        if antpairs.size and (antpairs.min() < 0 or antpairs.max() >= num_tiles):
            raise ValueError(f"antpairs contains tiles outside of [0, {num_tiles})")
        self.num_tiles = num_tiles
        self.antpairs = antpairs

        self.shapelet_basis = shapelet_basis or ShapeletBasis.empty()

        self.beam = beam
        if beam is not None:
            self.tile_map, self.freq_map = beam.resolve_maps(
                self.num_tiles, self.num_freqs
            )

        self._allocated: list[str] = []
        self.destroyed = False

    @classmethod
    def create(cls, *args, **kwargs) -> ModelContext:
        """Build a context and upload everything to the device.

        Takes the same arguments as the class. If setup fails for any
        reason, everything allocated so far is released before the error
        propagates.
        """
        ctx = cls(*args, **kwargs)
        ctx.setup()
        return ctx

    @property
    def num_vis(self) -> int:
        """Number of visibility cells (baseline, frequency)."""
        return self.num_baselines * self.num_freqs

    @property
    def use_beam(self) -> bool:
        """Whether a beam correction is applied."""
        return self.beam is not None

    @property
    def sbf_n(self) -> int:
        return self.shapelet_basis.sbf_n

    @property
    def sbf_l(self) -> int:
        return self.shapelet_basis.sbf_l

    @property
    def sbf_c(self) -> float:
        return self.shapelet_basis.sbf_c

    @property
    def sbf_dx(self) -> float:
        return self.shapelet_basis.sbf_dx

    def memory_estimate(self) -> dict[str, int]:
        """Size in bytes of each device buffer."""
        beam = self.beam
        return estimate_context_memory(
            nbl=self.num_baselines,
            nfreq=self.num_freqs,
            ntiles=self.num_tiles,
            sbf_l=self.sbf_l,
            sbf_n=self.sbf_n,
            precision=self.precision,
            nbeam_jones=len(beam.beam_jones) if beam is not None else 0,
            nbeam_keys=beam.jones_map.size if beam is not None else 0,
            nbeam_coeff_bytes=beam.coeffs.size if beam is not None else 0,
        )

    def setup(self):
        """Allocate device buffers and upload the inputs."""
        sizes = self.memory_estimate()
        logger.info(
            f"Allocating model context: {human_readable_size(sum(sizes.values()))} "
            f"for {self.num_baselines} baselines and {self.num_freqs} frequencies"
        )
        for name, size in sizes.items():
            if size:
                logger.info(f"    {name:>14}: {human_readable_size(size)}")
        try:
            self.d_uvws = self._to_device("d_uvws", self.uvws, self.rtype)
            self.d_freqs = self._to_device("d_freqs", self.freqs, self.rtype)
            self.d_antpairs = self._to_device("d_antpairs", self.antpairs, np.int32)
            self.d_shapelet_basis = self._to_device(
                "d_shapelet_basis", self.shapelet_basis.values, self.rtype
            )

            if self.use_beam:
                beam = self.beam
                self.d_beam_coeffs = self._to_device(
                    "d_beam_coeffs", beam.coeffs, np.uint8
                )
                self.d_tile_map = self._to_device("d_tile_map", self.tile_map, np.int32)
                self.d_freq_map = self._to_device("d_freq_map", self.freq_map, np.int32)
                self.d_jones_map = self._to_device(
                    "d_jones_map", beam.jones_map, np.int64
                )
                self.d_beam_jones = self._to_device(
                    "d_beam_jones", beam.beam_jones, self.ctype
                )
                self.d_norm_jones = self._to_device(
                    "d_norm_jones", beam.norm_jones, self.ctype
                )

            self.d_vis = self._to_device("d_vis", self.host_vis, JONES_F32)
        except BaseException:
            logger.error("Model context setup failed; releasing device buffers")
            self.destroy()
            raise

    def _to_device(self, name: str, host: np.ndarray, dtype):
        """Allocate a tracked device buffer named ``name`` and copy ``host`` into it."""
        buf = self._allocate(np.shape(host), dtype)
        setattr(self, name, buf)
        self._allocated.append(name)
        self._copy_to_device(buf, host)
        return buf

    def to_device(self, host: np.ndarray, dtype):
        """Upload a transient (untracked) device copy of ``host``."""
        buf = self._allocate(np.shape(host), dtype)
        self._copy_to_device(buf, host)
        return buf

    @abstractmethod
    def _allocate(self, shape: tuple[int, ...], dtype):
        """Allocate an uninitialised device buffer. Raises AllocationError."""

    @abstractmethod
    def _copy_to_device(self, dst, src: np.ndarray):
        """Copy a host array into a device buffer. Raises CopyError."""

    @abstractmethod
    def _copy_to_host(self, dst: np.ndarray, src):
        """Copy a device buffer into a host array. Raises CopyError."""

    @abstractmethod
    def synchronize(self):
        """Wait for all device work to finish. Raises SynchronizeError."""

    def _release(self):  # noqa: B027
        """Hook to return freed memory to the device."""

    def clear_visibilities(self):
        """Zero the device visibility buffer."""
        self.d_vis.fill(0)

    def read_back_visibilities(self) -> np.ndarray:
        """Copy the device visibilities into the host buffer and return it."""
        self.synchronize()
        self._copy_to_host(self.host_vis, self.d_vis)
        return self.host_vis

    def destroy(self):
        """Release every device buffer. Calling this more than once is a no-op."""
        if self.destroyed:
            return

        for name in reversed(self._allocated):
            setattr(self, name, None)
        nbuf = len(self._allocated)
        self._allocated.clear()
        self._release()
        self.destroyed = True
        logger.debug(f"Released {nbuf} device buffers")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.destroy()
