"""Functions for baseline geometry and direction cosines."""

from __future__ import annotations

import numpy as np


def cross_correlation_antpairs(num_tiles: int) -> np.ndarray:
    """All cross-correlation tile pairs ``(i, j)`` with ``i < j``.

    The ordering is the baseline ordering of the visibility buffer.

    Examples
    --------
    >>> cross_correlation_antpairs(3).tolist()
    [[0, 1], [0, 2], [1, 2]]
    """
    ant1, ant2 = np.triu_indices(num_tiles, k=1)
    return np.stack([ant1, ant2], axis=1).astype(np.int32)


def num_tiles_from_baselines(num_baselines: int) -> int:
    """Invert ``n (n - 1) / 2`` to get the number of tiles.

    Raises
    ------
    ValueError
        If ``num_baselines`` is not a triangular number.
    """
    n = int(round((1 + np.sqrt(1 + 8 * num_baselines)) / 2))
    if n * (n - 1) // 2 != num_baselines:
        raise ValueError(
            f"{num_baselines} baselines is not a whole number of cross-correlations; "
            "pass antpairs explicitly"
        )
    return n


def xyzs_to_cross_uvws(xyzs: np.ndarray, ha: float, dec: float) -> np.ndarray:
    """Convert geodetic tile XYZs to baseline UVWs towards ``(ha, dec)``.

    Parameters
    ----------
    xyzs
        Tile positions [metres], shape ``(NTILES, 3)``.
    ha, dec
        Hour angle and declination of the phase centre [radians].

    Returns
    -------
    uvws
        Shape ``(NBLS, 3)`` in the order of :func:`cross_correlation_antpairs`.
    """
    xyzs = np.asarray(xyzs, dtype=np.float64)
    pairs = cross_correlation_antpairs(len(xyzs))
    diff = xyzs[pairs[:, 0]] - xyzs[pairs[:, 1]]
    x, y, z = diff.T

    s_ha, c_ha = np.sin(ha), np.cos(ha)
    s_dec, c_dec = np.sin(dec), np.cos(dec)

    u = s_ha * x + c_ha * y
    v = -s_dec * c_ha * x + s_dec * s_ha * y + c_dec * z
    w = c_dec * c_ha * x - c_dec * s_ha * y + s_dec * z
    return np.stack([u, v, w], axis=1)


def get_shapelet_uvs(xyzs: np.ndarray, has: np.ndarray, decs: np.ndarray) -> np.ndarray:
    """Baseline UVs computed as if each component were the phase centre.

    Returns
    -------
    shapelet_uvs
        Shape ``(NBLS, NCOMP, 2)`` [metres].
    """
    has = np.atleast_1d(has)
    decs = np.atleast_1d(decs)
    nbl = len(xyzs) * (len(xyzs) - 1) // 2
    out = np.zeros((nbl, len(has), 2))
    for i, (ha, dec) in enumerate(zip(has, decs)):
        out[:, i] = xyzs_to_cross_uvws(xyzs, ha, dec)[:, :2]
    return out


def radec_to_lmn(ra, dec, ra0: float, dec0: float) -> np.ndarray:
    """Direction cosines of ``(ra, dec)`` relative to the phase centre ``(ra0, dec0)``.

    Returns
    -------
    lmns
        Shape ``(NCOMP, 3)``.
    """
    ra = np.atleast_1d(ra)
    dec = np.atleast_1d(dec)
    d_ra = ra - ra0
    l = np.cos(dec) * np.sin(d_ra)
    m = np.sin(dec) * np.cos(dec0) - np.cos(dec) * np.sin(dec0) * np.cos(d_ra)
    n = np.sin(dec) * np.sin(dec0) + np.cos(dec) * np.cos(dec0) * np.cos(d_ra)
    return np.stack([l, m, n], axis=1)
