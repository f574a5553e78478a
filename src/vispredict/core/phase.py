"""Phase and envelope terms shared by all component types."""

import numpy as np
from astropy.constants import c as speed_of_light

from ..jones import get_array_module

ONE_OVER_C = 1.0 / speed_of_light.value

#: -(pi/2)^2 / ln(2), the exponent constant of a FWHM-parametrised Gaussian.
GAUSSIAN_EXP_CONST = -((np.pi / 2) ** 2) / np.log(2)


def uvws_in_wavelengths(uvws, freqs):
    """Scale baseline UVWs [metres] by each frequency.

    Parameters
    ----------
    uvws
        Shape ``(NBLS, 3)``.
    freqs
        Shape ``(NFREQS,)`` [Hz].

    Returns
    -------
    uvw_lambda
        Shape ``(NBLS, NFREQS, 3)``.
    """
    return uvws[:, None, :] * (freqs * ONE_OVER_C)[None, :, None]


def phase_term(uvw_lambda, lmns):
    """Compute exp(-2πi (ul + vm + w(n-1))).

    Parameters
    ----------
    uvw_lambda
        Baseline coordinates in wavelengths. Shape=(..., 3).
    lmns
        Direction cosines. Shape=(Ncomp, 3).

    Returns
    -------
    phase
        Shape=(..., Ncomp).
    """
    xp = get_array_module(uvw_lambda, lmns)
    lmn = lmns.copy()
    lmn[:, 2] -= 1
    arg = -2 * np.pi * xp.matmul(uvw_lambda, lmn.T)
    return xp.cos(arg) + 1j * xp.sin(arg)


def gaussian_envelope(u, v, gaussian_params):
    """Real Gaussian envelope of each component on each baseline.

    Parameters
    ----------
    u, v
        Baseline coordinates in wavelengths, broadcastable against the
        component axis (typically shape ``(NBLS, NFREQS, 1)``).
    gaussian_params
        Shape ``(Ncomp, 3)``: major axis, minor axis, position angle.
    """
    xp = get_array_module(u, gaussian_params)
    maj, mnr, pa = gaussian_params[:, 0], gaussian_params[:, 1], gaussian_params[:, 2]
    s_pa, c_pa = xp.sin(pa), xp.cos(pa)

    k_x = u * s_pa + v * c_pa
    k_y = u * c_pa - v * s_pa
    return xp.exp(GAUSSIAN_EXP_CONST * (maj**2 * k_x**2 + mnr**2 * k_y**2))
