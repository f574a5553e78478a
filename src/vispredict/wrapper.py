"""Simple wrapper for modelling a single timestep in one call."""

from __future__ import annotations

import logging
import numpy as np
from docstring_parser import combine_docstrings
from typing import Literal

from . import HAVE_GPU, cpu
from .components import GaussianComponents, PointComponents, ShapeletComponents
from .core.beams import BeamTables
from .core.context import ModelContext
from .shapelets import ShapeletBasis

if HAVE_GPU:
    from . import gpu

logger = logging.getLogger(__name__)


def get_backend(use_gpu: bool = False):
    """Get the (context class, modeller class) pair of a backend."""
    if use_gpu:
        if not HAVE_GPU:
            raise ImportError("You cannot use GPU without installing GPU-dependencies!")

        import cupy as cp

        device = cp.cuda.Device()
        attrs = {str(k): v for k, v in device.attributes.items()}
        string = "\n\t".join(f"{k}: {v}" for k, v in attrs.items())
        logger.debug(
            f"""
            Your GPU has the following attributes:
            \t{string}
            """
        )
        return gpu.GPUModelContext, gpu.GPUSkyModeller

    return cpu.CPUModelContext, cpu.CPUSkyModeller


@combine_docstrings(ModelContext)
def model_timestep(
    vis: np.ndarray,
    uvws: np.ndarray,
    freqs: np.ndarray,
    points: PointComponents | None = None,
    gaussians: GaussianComponents | None = None,
    shapelets: ShapeletComponents | None = None,
    shapelet_basis: ShapeletBasis | None = None,
    beam: BeamTables | None = None,
    num_tiles: int | None = None,
    antpairs: np.ndarray | None = None,
    precision: Literal[1, 2] = 2,
    use_gpu: bool = False,
    **backend_kwargs,
) -> np.ndarray:
    """
    Model the visibilities of one timestep.

    Creates a model context, runs the point, Gaussian and shapelet kernels in
    that order, reads the result back into ``vis`` and releases the context.
    Contributions are added to whatever ``vis`` already holds, so pass a
    zeroed buffer to get the model alone.

    Parameters
    ----------
    points
        Point components to model. May be None or empty.
    gaussians
        Gaussian components to model. May be None or empty.
    shapelets
        Shapelet components to model. May be None or empty.
    use_gpu
        Whether to run on the GPU.
    backend_kwargs
        Passed to the backend's modeller, e.g. ``nthreads`` for the GPU or
        ``chunk_size`` for the CPU.

    Returns
    -------
    vis
        The same array as passed in, shape ``(NBLS, NFREQS, 2, 2)``.
    """
    ctx_cls, modeller_cls = get_backend(use_gpu)

    if shapelet_basis is None and shapelets is not None and len(shapelets):
        shapelet_basis = ShapeletBasis.default()

    with ctx_cls.create(
        uvws,
        freqs,
        vis,
        shapelet_basis=shapelet_basis,
        beam=beam,
        num_tiles=num_tiles,
        antpairs=antpairs,
        precision=precision,
    ) as ctx:
        modeller = modeller_cls(ctx, **backend_kwargs)
        modeller.model_timestep(points=points, gaussians=gaussians, shapelets=shapelets)
        return ctx.read_back_visibilities()
