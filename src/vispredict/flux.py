"""Helpers for building the per-frequency flux-density Jones matrices.

The kernels take one instrumental flux-density Jones matrix per (frequency,
component). These functions produce them from Stokes parameters and spectral
models.
"""

from __future__ import annotations

import numpy as np

#: Reference frequency of power-law flux densities [Hz].
POWER_LAW_FD_REF_FREQ = 150e6


def stokes_to_instrumental(i, q=0.0, u=0.0, v=0.0) -> np.ndarray:
    """Convert Stokes parameters to instrumental (linear-feed) Jones matrices.

    ``XX = I + Q``, ``XY = U + iV``, ``YX = U - iV``, ``YY = I - Q``.

    Returns
    -------
    jones
        Shape ``np.broadcast(i, q, u, v).shape + (2, 2)``, complex128.
    """
    i, q, u, v = np.broadcast_arrays(
        *(np.asarray(x, dtype=np.float64) for x in (i, q, u, v))
    )
    out = np.empty(i.shape + (2, 2), dtype=np.complex128)
    out[..., 0, 0] = i + q
    out[..., 0, 1] = u + 1j * v
    out[..., 1, 0] = u - 1j * v
    out[..., 1, 1] = i - q
    return out


def calc_flux_ratio(freqs, ref_freq: float, spec_index):
    """Ratio ``(freqs / ref_freq) ** spec_index``."""
    return (np.asarray(freqs) / ref_freq) ** spec_index


def power_law_flux_jones(
    ref_flux_jones: np.ndarray,
    spec_indices: np.ndarray,
    freqs: np.ndarray,
    ref_freq: float = POWER_LAW_FD_REF_FREQ,
) -> np.ndarray:
    """Extrapolate reference flux densities with a power law.

    Parameters
    ----------
    ref_flux_jones
        Flux densities at ``ref_freq``, shape ``(NCOMP, 2, 2)``.
    spec_indices
        Spectral index of each component, shape ``(NCOMP,)``.
    freqs
        Frequencies to evaluate at [Hz], shape ``(NFREQS,)``.

    Returns
    -------
    flux_jones
        Shape ``(NFREQS, NCOMP, 2, 2)``.
    """
    ref_flux_jones = np.asarray(ref_flux_jones, dtype=np.complex128)
    ratio = calc_flux_ratio(
        np.asarray(freqs)[:, None], ref_freq, np.asarray(spec_indices)[None, :]
    )
    return ref_flux_jones[None] * ratio[..., None, None]


def curved_power_law_flux_jones(
    ref_flux_jones: np.ndarray,
    spec_indices: np.ndarray,
    curvatures: np.ndarray,
    freqs: np.ndarray,
    ref_freq: float = POWER_LAW_FD_REF_FREQ,
) -> np.ndarray:
    """Extrapolate reference flux densities with a curved power law.

    ``S(f) = S0 (f / f0)^alpha exp(q ln(f / f0)^2)``. Shapes are as in
    :func:`power_law_flux_jones`, with ``curvatures`` shaped ``(NCOMP,)``.
    """
    out = power_law_flux_jones(ref_flux_jones, spec_indices, freqs, ref_freq)
    log_ratio = np.log(np.asarray(freqs) / ref_freq)[:, None]
    curve = np.exp(np.asarray(curvatures)[None, :] * log_ratio**2)
    return out * curve[..., None, None]
