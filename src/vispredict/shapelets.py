"""Shapelet basis functions and the lookup table used by the shapelet kernel."""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass
from functools import cache

from .jones import get_array_module

#: Number of samples per basis function in the default table.
SBF_L = 10001
#: Number of basis-function orders in the default table.
SBF_N = 101
#: Sample index of x = 0.
SBF_C = 5000.0
#: Sample spacing.
SBF_DX = 0.01

#: sqrt(pi^2 / (2 ln 2)); converts a FWHM-scaled UV projection into basis units.
SQRT_FRAC_PI_SQ_2_LN_2 = np.sqrt(np.pi**2 / (2 * np.log(2)))

#: (-i)^k for k = 0..3, the Fourier phase of an order-k Hermite function.
I_POWER_TABLE = np.array([1.0, -1.0j, -1.0, 1.0j])


def hermite_functions(x: np.ndarray, nmax: int) -> np.ndarray:
    r"""Evaluate unnormalised Hermite functions of orders ``0..nmax-1``.

    .. math::

        \phi_n(x) = \frac{H_n(x) e^{-x^2/2}}{\sqrt{2^n n!}}

    computed with the three-term recurrence, which stays finite for high
    orders where ``H_n`` alone would overflow. ``phi_0(0) == 1``.

    Returns
    -------
    phi
        Shape ``(nmax, len(x))``.
    """
    x = np.asarray(x, dtype=np.float64)
    out = np.zeros((nmax, x.size))
    if nmax == 0:
        return out

    out[0] = np.exp(-0.5 * x**2)
    if nmax > 1:
        out[1] = np.sqrt(2.0) * x * out[0]
    for n in range(1, nmax - 1):
        out[n + 1] = (
            np.sqrt(2.0 / (n + 1)) * x * out[n] - np.sqrt(n / (n + 1)) * out[n - 1]
        )
    return out


@dataclass(frozen=True)
class ShapeletBasis:
    """A dense table of sampled basis functions.

    Row ``n`` holds order ``n`` sampled at ``x = (i - sbf_c) * sbf_dx`` for
    ``i`` in ``range(sbf_l)``.
    """

    values: np.ndarray
    sbf_c: float = SBF_C
    sbf_dx: float = SBF_DX

    def __post_init__(self):
        values = np.ascontiguousarray(self.values, dtype=np.float64)
        if values.ndim != 2:
            raise ValueError(
                f"shapelet basis values must have shape (sbf_n, sbf_l), got {values.shape}"
            )
        if self.sbf_dx <= 0:
            raise ValueError(f"sbf_dx must be positive, got {self.sbf_dx}")
        object.__setattr__(self, "values", values)

    @property
    def sbf_n(self) -> int:
        """Number of basis-function orders."""
        return self.values.shape[0]

    @property
    def sbf_l(self) -> int:
        """Number of samples per order."""
        return self.values.shape[1]

    @classmethod
    def default(cls) -> ShapeletBasis:
        """The standard table of Hermite functions."""
        return cls(values=generate_basis(), sbf_c=SBF_C, sbf_dx=SBF_DX)

    @classmethod
    def empty(cls) -> ShapeletBasis:
        """A table with no samples, for contexts that model no shapelets."""
        return cls(values=np.zeros((0, 0)))


@cache
def _default_basis() -> np.ndarray:
    x = (np.arange(SBF_L) - SBF_C) * SBF_DX
    values = hermite_functions(x, SBF_N)
    values.flags.writeable = False
    return values


def generate_basis(
    sbf_l: int = SBF_L, sbf_n: int = SBF_N, sbf_c: float = SBF_C, sbf_dx: float = SBF_DX
) -> np.ndarray:
    """Generate a table of Hermite functions with shape ``(sbf_n, sbf_l)``."""
    if (sbf_l, sbf_n, sbf_c, sbf_dx) == (SBF_L, SBF_N, SBF_C, SBF_DX):
        return _default_basis()

    x = (np.arange(sbf_l) - sbf_c) * sbf_dx
    return hermite_functions(x, sbf_n)


def interp_basis(values, orders, pos):
    """Linearly interpolate basis functions at fractional sample positions.

    Parameters
    ----------
    values
        The basis table, shape ``(sbf_n, sbf_l)``.
    orders
        Integer orders, shape ``(ncoeff,)``.
    pos
        Fractional sample positions, any shape.

    Returns
    -------
    out
        Shape ``(ncoeff,) + pos.shape``. Lookups whose position is NaN, negative
        or ``>= sbf_l - 1``, or whose order is ``>= sbf_n``, are zero.
    """
    xp = get_array_module(values, pos)
    sbf_n, sbf_l = values.shape

    orders = xp.asarray(orders)
    pos = xp.asarray(pos)
    if sbf_n == 0 or sbf_l < 2:
        return xp.zeros(orders.shape + pos.shape, dtype=values.dtype)

    valid = (pos >= 0) & (pos < sbf_l - 1)
    pos_floor = xp.floor(xp.where(valid, pos, 0))
    idx = pos_floor.astype(np.int64)

    valid_order = orders < sbf_n
    rows = xp.where(valid_order, orders, 0).reshape(orders.shape + (1,) * pos.ndim)

    low = values[rows, idx]
    high = values[rows, idx + 1]
    out = low + (high - low) * (xp.where(valid, pos, 0) - pos_floor)

    mask = valid[None] & valid_order.reshape(valid_order.shape + (1,) * pos.ndim)
    return xp.where(mask, out, 0)


def shapelet_envelope(
    basis: ShapeletBasis,
    values,
    u,
    v,
    gaussian_params,
    n1,
    n2,
    coeff_values,
):
    """Evaluate the complex shapelet envelope of one component.

    Parameters
    ----------
    basis
        The table's metadata (``sbf_c`` and ``sbf_dx``).
    values
        The basis table itself (possibly device-resident).
    u, v
        Shapelet UV coordinates in wavelengths, any (matching) shape.
    gaussian_params
        ``(maj, min, pa)`` of the component.
    n1, n2, coeff_values
        The component's coefficients.

    Returns
    -------
    envelope
        Complex array shaped like ``u``.
    """
    xp = get_array_module(values, u)
    maj, mnr, pa = (float(p) for p in gaussian_params)
    s_pa, c_pa = np.sin(pa), np.cos(pa)

    x = u * s_pa + v * c_pa
    y = u * c_pa - v * s_pa
    const_x = maj * SQRT_FRAC_PI_SQ_2_LN_2 / basis.sbf_dx
    const_y = -mnr * SQRT_FRAC_PI_SQ_2_LN_2 / basis.sbf_dx
    x_pos = x * const_x + basis.sbf_c
    y_pos = y * const_y + basis.sbf_c

    n1 = xp.asarray(n1)
    n2 = xp.asarray(n2)
    if n1.size == 0:
        return xp.zeros(xp.shape(u), dtype=np.complex128)

    u_value = interp_basis(values, n1, x_pos)
    v_value = interp_basis(values, n2, y_pos)

    ipow = xp.asarray(I_POWER_TABLE)[(n1 + n2) % 4]
    weights = ipow * xp.asarray(coeff_values)
    return xp.tensordot(weights, u_value * v_value, axes=(0, 0))
