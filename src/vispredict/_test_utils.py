"""Standard sky models and a direct reference model, for tests and profiling."""

from __future__ import annotations

import numpy as np

from .components import GaussianComponents, PointComponents, ShapeletComponents
from .coordinates import (
    cross_correlation_antpairs,
    get_shapelet_uvs,
    num_tiles_from_baselines,
    radec_to_lmn,
    xyzs_to_cross_uvws,
)
from .core.beams import BeamTables
from .core.phase import GAUSSIAN_EXP_CONST, ONE_OVER_C
from .flux import power_law_flux_jones, stokes_to_instrumental
from .shapelets import I_POWER_TABLE, SQRT_FRAC_PI_SQ_2_LN_2, ShapeletBasis

ntiles = 4
nfreqs = 3
npoints = 5
ngaussians = 4
nshapelets = 3


def get_standard_sky_params(
    ntiles: int = ntiles,
    nfreqs: int = nfreqs,
    npoints: int = npoints,
    ngaussians: int = ngaussians,
    nshapelets: int = nshapelets,
    ncoeffs: int = 5,
    ha: float = 0.0,
    freq_min: float = 150e6,
    freq_max: float = 200e6,
    seed: int = 1,
):
    """Create some standard random modelling parameters.

    Tiles are scattered over a 1 km square and components within a few
    degrees of a phase centre at zenith. Shapelet components get a random
    number (up to ``ncoeffs``) of low-order coefficients, so some have none.

    Returns
    -------
    uvws, freqs, points, gaussians, shapelets
    """
    rng = np.random.default_rng(seed)

    xyzs = rng.uniform(-500, 500, size=(ntiles, 3))
    xyzs[:, 2] *= 0.01
    freqs = np.linspace(freq_min, freq_max, nfreqs)
    uvws = xyzs_to_cross_uvws(xyzs, ha, 0.0)

    def sky(n):
        ra = rng.uniform(-0.05, 0.05, n)
        dec = rng.uniform(-0.05, 0.05, n)
        lmns = radec_to_lmn(ra, dec, 0.0, 0.0)
        flux = power_law_flux_jones(
            stokes_to_instrumental(
                rng.uniform(0.1, 10, n),
                rng.uniform(-0.1, 0.1, n),
                rng.uniform(-0.1, 0.1, n),
                rng.uniform(-0.1, 0.1, n),
            ),
            rng.normal(-0.8, 0.1, n),
            freqs,
        )
        return ra, dec, lmns, flux

    def shapes(n):
        return np.stack(
            [
                rng.uniform(1e-4, 1e-3, n),
                rng.uniform(1e-4, 1e-3, n),
                rng.uniform(0, np.pi, n),
            ],
            axis=1,
        )

    _, _, lmns, flux = sky(npoints)
    points = PointComponents(lmns, flux)

    _, _, lmns, flux = sky(ngaussians)
    gaussians = GaussianComponents(lmns, flux, shapes(ngaussians))

    ra, dec, lmns, flux = sky(nshapelets)
    coeffs = [
        [
            (int(rng.integers(0, 6)), int(rng.integers(0, 6)), rng.normal())
            for _ in range(rng.integers(0, ncoeffs + 1))
        ]
        for _ in range(nshapelets)
    ]
    shapelets = ShapeletComponents.from_coeff_lists(
        lmns, flux, shapes(nshapelets), get_shapelet_uvs(xyzs, ha - ra, dec), coeffs
    )

    return uvws, freqs, points, gaussians, shapelets


def get_standard_beam(ntiles: int = ntiles, nfreqs: int = nfreqs, seed: int = 2) -> BeamTables:
    """Random, well-conditioned beam tables with one response per tile and frequency."""
    rng = np.random.default_rng(seed)
    shape = (ntiles, nfreqs)
    beam_jones = rng.normal(size=shape + (2, 2)) + 1j * rng.normal(size=shape + (2, 2))
    beam_jones += 3 * np.eye(2)
    norm_jones = rng.normal(size=shape + (2, 2)) * 0.1 + np.eye(2)
    return BeamTables(
        jones_map=np.arange(ntiles * nfreqs).reshape(shape),
        beam_jones=beam_jones.reshape(-1, 2, 2),
        norm_jones=norm_jones,
    )


def _lookup(values: np.ndarray, order: int, pos: float) -> float:
    sbf_n, sbf_l = values.shape
    if order >= sbf_n or not (0 <= pos < sbf_l - 1):
        return 0.0
    i = int(np.floor(pos))
    return values[order, i] + (values[order, i + 1] - values[order, i]) * (pos - i)


def direct_visibilities(
    uvws: np.ndarray,
    freqs: np.ndarray,
    points: PointComponents | None = None,
    gaussians: GaussianComponents | None = None,
    shapelets: ShapeletComponents | None = None,
    shapelet_basis: ShapeletBasis | None = None,
    beam: BeamTables | None = None,
    antpairs: np.ndarray | None = None,
) -> np.ndarray:
    """Model visibilities one cell and one component at a time, in double precision.

    This is slow, and only meant as an independent reference for small inputs.
    """
    nbl = len(uvws)
    out = np.zeros((nbl, len(freqs), 2, 2), dtype=np.complex128)
    if antpairs is None:
        antpairs = cross_correlation_antpairs(num_tiles_from_baselines(nbl))
    if beam is not None:
        tile_map, freq_map = beam.resolve_maps(int(np.max(antpairs)) + 1, len(freqs))

    def beam_of(tile, f):
        key = (tile_map[tile], freq_map[f])
        norm = beam.norm_jones[key]
        return np.linalg.inv(norm) @ beam.beam_jones[beam.jones_map[key]]

    for b in range(nbl):
        for f, freq in enumerate(freqs):
            u, v, w = uvws[b] * freq * ONE_OVER_C
            acc = np.zeros((2, 2), dtype=np.complex128)

            def phase(lmn):
                l, m, n = lmn
                return np.exp(-2j * np.pi * (u * l + v * m + w * (n - 1)))

            for i in range(len(points) if points is not None else 0):
                acc += phase(points.lmns[i]) * points.flux_jones[f, i]

            for i in range(len(gaussians) if gaussians is not None else 0):
                maj, mnr, pa = gaussians.gaussian_params[i]
                k_x = u * np.sin(pa) + v * np.cos(pa)
                k_y = u * np.cos(pa) - v * np.sin(pa)
                env = np.exp(GAUSSIAN_EXP_CONST * (maj**2 * k_x**2 + mnr**2 * k_y**2))
                acc += phase(gaussians.lmns[i]) * env * gaussians.flux_jones[f, i]

            for i in range(len(shapelets) if shapelets is not None else 0):
                maj, mnr, pa = shapelets.gaussian_params[i]
                su, sv = shapelets.shapelet_uvs[b, i] * freq * ONE_OVER_C
                x = su * np.sin(pa) + sv * np.cos(pa)
                y = su * np.cos(pa) - sv * np.sin(pa)
                basis = shapelet_basis
                x_pos = x * maj * SQRT_FRAC_PI_SQ_2_LN_2 / basis.sbf_dx + basis.sbf_c
                y_pos = -y * mnr * SQRT_FRAC_PI_SQ_2_LN_2 / basis.sbf_dx + basis.sbf_c

                env = 0j
                for n1, n2, value in shapelets.component_coeffs(i).tolist():
                    env += (
                        I_POWER_TABLE[(n1 + n2) % 4]
                        * value
                        * _lookup(basis.values, n1, x_pos)
                        * _lookup(basis.values, n2, y_pos)
                    )
                acc += phase(shapelets.lmns[i]) * env * shapelets.flux_jones[f, i]

            if beam is not None:
                t1, t2 = antpairs[b]
                acc = beam_of(t1, f) @ acc @ beam_of(t2, f).conj().T

            out[b, f] = acc

    return out
