"""Algebra on 2x2 complex Jones matrices.

A Jones matrix is a plain value: any array whose last two axes have shape
``(2, 2)``. Entries are ordered ``[[xx, xy], [yx, yy]]``. All functions here
broadcast over leading axes and work equally on numpy and cupy arrays.
"""

from __future__ import annotations

import numpy as np

from . import HAVE_GPU

if HAVE_GPU:
    import cupy as cp

    get_array_module = cp.get_array_module
else:

    def get_array_module(*x):
        """Return numpy as the array module."""
        return np


#: Storage type of the flux densities handed to the kernels.
JONES_F64 = np.dtype(np.complex128)
#: Storage type of the visibility accumulation buffer.
JONES_F32 = np.dtype(np.complex64)


def identity(shape: tuple[int, ...] = (), dtype=JONES_F64, xp=np):
    """Return identity Jones matrices broadcast to ``shape``."""
    out = xp.zeros(shape + (2, 2), dtype=dtype)
    out[..., 0, 0] = 1
    out[..., 1, 1] = 1
    return out


def zeros(shape: tuple[int, ...] = (), dtype=JONES_F64, xp=np):
    """Return zero Jones matrices of the given leading shape."""
    return xp.zeros(shape + (2, 2), dtype=dtype)


def add(a, b):
    """Component-wise sum of two Jones matrices."""
    return a + b


def mul(a, b):
    """Matrix product ``a · b``."""
    xp = get_array_module(a, b)
    return xp.matmul(a, b)


def scale(a, s):
    """Scale Jones matrices by real or complex scalars.

    ``s`` is broadcast against the leading (non-matrix) axes of ``a``.
    """
    xp = get_array_module(a)
    s = xp.asarray(s)
    return a * s[..., None, None]


def hermitian(a):
    """Conjugate transpose of each Jones matrix."""
    return a.conj().swapaxes(-1, -2)


def det(a):
    """Determinant of each Jones matrix."""
    return a[..., 0, 0] * a[..., 1, 1] - a[..., 0, 1] * a[..., 1, 0]


def inv(a):
    """Inverse of each Jones matrix.

    Singular matrices produce non-finite values rather than an error.
    """
    xp = get_array_module(a)
    out = xp.empty_like(a)
    with np.errstate(divide="ignore", invalid="ignore"):
        d = det(a)
        out[..., 0, 0] = a[..., 1, 1] / d
        out[..., 0, 1] = -a[..., 0, 1] / d
        out[..., 1, 0] = -a[..., 1, 0] / d
        out[..., 1, 1] = a[..., 0, 0] / d
    return out


def normalise(beam, norm):
    """Normalise beam Jones matrices, i.e. ``norm^-1 · beam``.

    This is the matrix analogue of division, so ``normalise(b, b)`` is the
    identity.
    """
    return mul(inv(norm), beam)


def apply_beam(j, left, right):
    """Sandwich ``j`` between two beam responses: ``left · j · right^H``."""
    return mul(mul(left, j), hermitian(right))

