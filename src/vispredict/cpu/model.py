"""CPU implementation of the component kernels."""

from __future__ import annotations

import logging
import numpy as np

from .. import jones
from .._utils import ceildiv, logdebug
from ..components import GaussianComponents, PointComponents, ShapeletComponents
from ..core.beams import beam_correct
from ..core.model import SkyModeller
from ..core.phase import (
    ONE_OVER_C,
    gaussian_envelope,
    phase_term,
    uvws_in_wavelengths,
)
from ..shapelets import shapelet_envelope
from .context import CPUModelContext

logger = logging.getLogger(__name__)

# Number of (baseline, frequency, component) weights held in memory at once.
_MAX_CHUNK_ELEMENTS = 2**24


class CPUSkyModeller(SkyModeller):
    """
    Vectorised numpy implementation of the component kernels.

    Components are processed in chunks. For each chunk, the weight of every
    (baseline, frequency, component) is computed and contracted against the
    flux densities; chunk sums are accumulated in component order.

    Parameters
    ----------
    context
        A :class:`~vispredict.cpu.CPUModelContext`.
    chunk_size
        Number of components per chunk. By default, as many as keep the weight
        array under ~16M elements.
    """

    def __init__(self, context: CPUModelContext, chunk_size: int | None = None):
        super().__init__(context)
        if chunk_size is None:
            chunk_size = max(1, _MAX_CHUNK_ELEMENTS // max(1, context.num_vis))
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size

        self.uvw_lambda = uvws_in_wavelengths(context.d_uvws, context.d_freqs)
        logdebug("uvw_lambda", self.uvw_lambda)

    def _chunks(self, ncomp: int):
        for i in range(ceildiv(ncomp, self.chunk_size)):
            yield slice(i * self.chunk_size, min((i + 1) * self.chunk_size, ncomp))

    def _sum_components(self, weights: np.ndarray, flux_jones: np.ndarray) -> np.ndarray:
        """Contract (NBLS, NFREQS, NCOMP) weights with (NFREQS, NCOMP, 2, 2) fluxes."""
        return np.einsum(
            "bfc,fcij->bfij", weights, flux_jones.astype(self.ctx.ctype, copy=False)
        )

    def _accumulate(self, acc: np.ndarray):
        ctx = self.ctx
        if ctx.use_beam:
            acc = beam_correct(
                acc,
                ctx.d_antpairs,
                ctx.d_tile_map,
                ctx.d_freq_map,
                ctx.d_jones_map,
                ctx.d_beam_jones,
                ctx.d_norm_jones,
            )
        ctx.d_vis += acc.astype(jones.JONES_F32)

    def _new_acc(self) -> np.ndarray:
        return jones.zeros((self.ctx.num_baselines, self.ctx.num_freqs), self.ctx.ctype)

    def _lmns(self, comps: PointComponents, sl: slice) -> np.ndarray:
        return comps.lmns[sl].astype(self.ctx.rtype)

    def compute_points(self, comps: PointComponents):
        """Accumulate point components."""
        acc = self._new_acc()
        for sl in self._chunks(len(comps)):
            weights = phase_term(self.uvw_lambda, self._lmns(comps, sl))
            acc += self._sum_components(weights, comps.flux_jones[:, sl])
        self._accumulate(acc)

    def compute_gaussians(self, comps: GaussianComponents):
        """Accumulate Gaussian components."""
        u = self.uvw_lambda[..., 0:1]
        v = self.uvw_lambda[..., 1:2]
        acc = self._new_acc()
        for sl in self._chunks(len(comps)):
            weights = phase_term(self.uvw_lambda, self._lmns(comps, sl))
            weights *= gaussian_envelope(
                u, v, comps.gaussian_params[sl].astype(self.ctx.rtype)
            )
            acc += self._sum_components(weights, comps.flux_jones[:, sl])
        self._accumulate(acc)

    def compute_shapelets(self, comps: ShapeletComponents):
        """Accumulate shapelet components."""
        ctx = self.ctx
        scale = (ctx.d_freqs * ONE_OVER_C)[None, :]
        coeffs = comps.shapelet_coeffs

        acc = self._new_acc()
        for sl in self._chunks(len(comps)):
            weights = phase_term(self.uvw_lambda, self._lmns(comps, sl))
            for j, i in enumerate(range(sl.start, sl.stop)):
                start = comps.coeff_offsets[i]
                ci = coeffs[start : start + comps.coeffs_per_component[i]]
                uvs = comps.shapelet_uvs[:, i].astype(ctx.rtype)
                envelope = shapelet_envelope(
                    ctx.shapelet_basis,
                    ctx.d_shapelet_basis,
                    uvs[:, 0:1] * scale,
                    uvs[:, 1:2] * scale,
                    comps.gaussian_params[i],
                    ci["n1"],
                    ci["n2"],
                    ci["value"].astype(ctx.rtype),
                )
                weights[..., j] *= envelope.astype(ctx.ctype, copy=False)
            acc += self._sum_components(weights, comps.flux_jones[:, sl])
        self._accumulate(acc)
