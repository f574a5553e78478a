"""Base class for the sky-model kernels."""

from __future__ import annotations

import logging
import numpy as np
from abc import ABC, abstractmethod

from .._utils import logdebug
from ..components import GaussianComponents, PointComponents, ShapeletComponents
from .context import ModelContext

logger = logging.getLogger(__name__)


class SkyModeller(ABC):
    """
    Abstract base class for accumulating component visibilities.

    Each ``model_*`` method adds the visibilities of one component list to the
    context's device visibility buffer. Every cell is the sum over components
    of ``phase · envelope · flux``, followed by the beam correction if the
    context has beam tables. Kernels may be called in any order; their
    contributions add.

    Parameters
    ----------
    context
        The device context holding the geometry and the visibility buffer.
    """

    def __init__(self, context: ModelContext):
        if context.destroyed:
            raise ValueError("cannot model into a destroyed context")
        self.ctx = context

    def _check(self, comps: PointComponents):
        nfreq = comps.flux_jones.shape[0]
        if nfreq != self.ctx.num_freqs:
            raise ValueError(
                f"flux_jones has {nfreq} frequencies but the context has "
                f"{self.ctx.num_freqs}"
            )
        if isinstance(comps, ShapeletComponents):
            nbl = comps.shapelet_uvs.shape[0]
            if nbl != self.ctx.num_baselines:
                raise ValueError(
                    f"shapelet_uvs has {nbl} baselines but the context has "
                    f"{self.ctx.num_baselines}"
                )
        return comps

    def model_points(self, lmns: np.ndarray, flux_jones: np.ndarray):
        """Add the visibilities of point components.

        Parameters
        ----------
        lmns
            Direction cosines, shape ``(NPOINTS, 3)``.
        flux_jones
            Instrumental flux densities, shape ``(NFREQS, NPOINTS, 2, 2)``.
        """
        self._run_points(self._check(PointComponents(lmns, flux_jones)))

    def model_gaussians(
        self, lmns: np.ndarray, flux_jones: np.ndarray, gaussian_params: np.ndarray
    ):
        """Add the visibilities of Gaussian components.

        Parameters
        ----------
        lmns, flux_jones
            As in :meth:`model_points`.
        gaussian_params
            Major axis, minor axis and position angle of each component,
            shape ``(NGAUSSIANS, 3)``.
        """
        self._run_gaussians(
            self._check(GaussianComponents(lmns, flux_jones, gaussian_params))
        )

    def model_shapelets(
        self,
        lmns: np.ndarray,
        flux_jones: np.ndarray,
        gaussian_params: np.ndarray,
        shapelet_uvs: np.ndarray,
        shapelet_coeffs: np.ndarray,
        coeffs_per_component: np.ndarray,
    ):
        """Add the visibilities of shapelet components.

        Parameters
        ----------
        lmns, flux_jones, gaussian_params
            As in :meth:`model_gaussians`.
        shapelet_uvs
            Per-component baseline UVs [metres], shape ``(NBLS, NSHAPELETS, 2)``.
        shapelet_coeffs
            Flattened ``(n1, n2, value)`` coefficients of all components.
        coeffs_per_component
            Number of coefficients of each component; component ``i`` owns the
            slice starting at the sum of the previous counts.
        """
        self._run_shapelets(
            self._check(
                ShapeletComponents(
                    lmns,
                    flux_jones,
                    gaussian_params,
                    shapelet_uvs,
                    shapelet_coeffs,
                    coeffs_per_component,
                )
            )
        )

    def _has_work(self, comps: PointComponents) -> bool:
        return bool(len(comps)) and self.ctx.num_vis > 0

    def _run_points(self, comps: PointComponents):
        if self._has_work(comps):
            self.compute_points(comps)

    def _run_gaussians(self, comps: GaussianComponents):
        if self._has_work(comps):
            self.compute_gaussians(comps)

    def _run_shapelets(self, comps: ShapeletComponents):
        if self._has_work(comps):
            self.compute_shapelets(comps)

    @abstractmethod
    def compute_points(self, comps: PointComponents):
        """Accumulate a non-empty list of point components."""

    @abstractmethod
    def compute_gaussians(self, comps: GaussianComponents):
        """Accumulate a non-empty list of Gaussian components."""

    @abstractmethod
    def compute_shapelets(self, comps: ShapeletComponents):
        """Accumulate a non-empty list of shapelet components."""

    def model_timestep(
        self,
        points: PointComponents | None = None,
        gaussians: GaussianComponents | None = None,
        shapelets: ShapeletComponents | None = None,
    ):
        """Run every applicable kernel, then synchronize.

        Component lists that are None or empty are skipped, as is everything
        when the context has no visibility cells.
        """
        for name, comps, run in (
            ("points", points, self._run_points),
            ("gaussians", gaussians, self._run_gaussians),
            ("shapelets", shapelets, self._run_shapelets),
        ):
            if comps is None:
                continue
            logger.debug(f"Modelling {len(comps)} {name}")
            run(self._check(comps))

        self.ctx.synchronize()
        logdebug("vis", self.ctx.d_vis)
