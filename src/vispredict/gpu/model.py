"""GPU implementation of the component kernels."""

from __future__ import annotations

import cupy as cp
import logging
import numpy as np

from .._utils import get_launch_config, logdebug
from ..components import GaussianComponents, PointComponents, ShapeletComponents
from ..core.model import SkyModeller
from ..errors import LaunchError
from .context import GPUModelContext
from .kernels import get_kernel

logger = logging.getLogger(__name__)


class GPUSkyModeller(SkyModeller):
    """
    CUDA implementation of the component kernels.

    Parameters
    ----------
    context
        A :class:`~vispredict.gpu.GPUModelContext`.
    nthreads
        Maximum number of threads per block.
    """

    def __init__(self, context: GPUModelContext, nthreads: int = 256):
        super().__init__(context)
        if not isinstance(context, GPUModelContext):
            raise TypeError("GPUSkyModeller requires a GPUModelContext")
        if nthreads < 1:
            raise ValueError(f"nthreads must be positive, got {nthreads}")
        self.nthreads = nthreads

        ctx = context
        self.geometry_args = (
            np.int32(ctx.num_freqs),
            np.int32(ctx.num_vis),
            ctx.d_uvws,
            ctx.d_freqs,
        )
        if ctx.use_beam:
            self.beam_args = (
                np.int32(1),
                ctx.d_antpairs,
                ctx.d_tile_map,
                ctx.d_freq_map,
                np.int32(ctx.beam.num_unique_freqs),
                ctx.d_jones_map,
                ctx.d_beam_jones,
                ctx.d_norm_jones,
            )
        else:
            # never dereferenced when use_beam is 0
            dummy = ctx.d_antpairs
            self.beam_args = (
                np.int32(0),
                ctx.d_antpairs,
                dummy,
                dummy,
                np.int32(0),
                dummy,
                dummy,
                dummy,
            )

    def _upload_components(self, comps: PointComponents):
        ctx = self.ctx
        return (
            np.int32(len(comps)),
            ctx.to_device(comps.lmns, ctx.rtype),
            ctx.to_device(comps.flux_jones, ctx.ctype),
        )

    @property
    def launch_config(self) -> tuple[tuple[int], tuple[int]]:
        """The (grid, block) of a launch covering every visibility cell."""
        return get_launch_config(self.nthreads, self.ctx.num_vis)

    def _launch(self, name: str, args: tuple):
        kernel = get_kernel(name, self.ctx.precision)
        grid, block = self.launch_config
        logger.debug(f"Launching {name} with grid={grid} block={block}")
        try:
            kernel(
                grid,
                block,
                args + self.geometry_args + self.beam_args + (self.ctx.d_vis,),
            )
        except (cp.cuda.driver.CUDADriverError, cp.cuda.runtime.CUDARuntimeError) as e:
            raise LaunchError(f"could not launch the {name} kernel") from e
        self.ctx.synchronize()
        logdebug("vis", self.ctx.d_vis)

    def compute_points(self, comps: PointComponents):
        """Launch the point kernel."""
        self._launch("model_points", self._upload_components(comps))

    def compute_gaussians(self, comps: GaussianComponents):
        """Launch the Gaussian kernel."""
        args = self._upload_components(comps) + (
            self.ctx.to_device(comps.gaussian_params, self.ctx.rtype),
        )
        self._launch("model_gaussians", args)

    def compute_shapelets(self, comps: ShapeletComponents):
        """Launch the shapelet kernel."""
        ctx = self.ctx
        coeffs = comps.shapelet_coeffs
        args = self._upload_components(comps) + (
            ctx.to_device(comps.gaussian_params, ctx.rtype),
            ctx.to_device(comps.shapelet_uvs, ctx.rtype),
            ctx.to_device(coeffs["n1"], np.int32),
            ctx.to_device(coeffs["n2"], np.int32),
            ctx.to_device(coeffs["value"], ctx.rtype),
            ctx.to_device(comps.coeff_offsets, np.int64),
            ctx.to_device(comps.coeffs_per_component, np.int32),
            ctx.d_shapelet_basis,
            np.int32(ctx.sbf_l),
            np.int32(ctx.sbf_n),
            ctx.rtype(ctx.sbf_c),
            ctx.rtype(ctx.sbf_dx),
        )
        self._launch("model_shapelets", args)
