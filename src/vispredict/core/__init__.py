"""Core functionality of the vispredict package.

This sub-package defines template routines for the modelling engine: the
device memory context, the phase and envelope evaluators, the beam stage and
the abstract sky modeller. These are implemented in the ``cpu`` and ``gpu``
sub-packages.
"""

import numpy as np


def _validate_inputs(
    precision: int,
    uvws: np.ndarray,
    freqs: np.ndarray,
    vis: np.ndarray,
):
    """Validate input shapes and types."""
    if precision not in {1, 2}:
        raise ValueError(f"precision must be 1 or 2, got {precision}")

    if uvws.ndim != 2 or uvws.shape[1] != 3:
        raise ValueError(f"uvws must have shape (NBLS, 3), got {uvws.shape}")
    nbl = uvws.shape[0]

    if freqs.ndim != 1:
        raise ValueError(f"freqs must have shape (NFREQS,), got {freqs.shape}")
    nfreq = freqs.shape[0]

    if not isinstance(vis, np.ndarray):
        raise ValueError("vis must be a numpy array on the host")
    if vis.shape != (nbl, nfreq, 2, 2):
        raise ValueError(
            f"vis must have shape ({nbl}, {nfreq}, 2, 2) (NBLS, NFREQS, 2, 2), "
            f"got {vis.shape}"
        )
    if vis.dtype != np.complex64:
        raise ValueError(f"vis must be complex64, got {vis.dtype}")
    if not vis.flags.c_contiguous or not vis.flags.writeable:
        raise ValueError("vis must be C-contiguous and writeable")

    return nbl, nfreq
