"""Host-side containers for the sky-model component lists.

Each container validates shapes on construction so that kernels can assume
consistent inputs. Counts are implied by the array lengths.
"""

from __future__ import annotations

import numpy as np
from collections.abc import Sequence
from dataclasses import dataclass, field

#: One flattened shapelet coefficient: basis orders (n1, n2) and its weight.
SHAPELET_COEFF_DTYPE = np.dtype(
    [("n1", np.int32), ("n2", np.int32), ("value", np.float64)]
)


def _as_lmns(lmns) -> np.ndarray:
    lmns = np.ascontiguousarray(lmns, dtype=np.float64)
    if lmns.ndim == 1 and lmns.size == 0:
        lmns = lmns.reshape((0, 3))
    if lmns.ndim != 2 or lmns.shape[1] != 3:
        raise ValueError(f"lmns must have shape (NCOMP, 3), got {lmns.shape}")
    return lmns


def _as_flux_jones(flux_jones, ncomp: int) -> np.ndarray:
    flux_jones = np.ascontiguousarray(flux_jones, dtype=np.complex128)
    if flux_jones.ndim != 4 or flux_jones.shape[1:] != (ncomp, 2, 2):
        raise ValueError(
            f"flux_jones must have shape (NFREQS, {ncomp}, 2, 2), got {flux_jones.shape}"
        )
    return flux_jones


def _as_gaussian_params(gaussian_params, ncomp: int) -> np.ndarray:
    gaussian_params = np.ascontiguousarray(gaussian_params, dtype=np.float64)
    if gaussian_params.size == 0:
        gaussian_params = gaussian_params.reshape((0, 3))
    if gaussian_params.shape != (ncomp, 3):
        raise ValueError(
            f"gaussian_params must have shape ({ncomp}, 3), got {gaussian_params.shape}"
        )
    return gaussian_params


def _coeffs_from_rows(rows) -> np.ndarray:
    rows = np.asarray(rows, dtype=np.float64).reshape((-1, 3))
    orders = rows[:, :2]
    if not np.all(orders == np.round(orders)):
        raise ValueError("shapelet basis orders must be integers")

    out = np.empty(len(rows), dtype=SHAPELET_COEFF_DTYPE)
    out["n1"] = orders[:, 0]
    out["n2"] = orders[:, 1]
    out["value"] = rows[:, 2]
    return out


def flatten_shapelet_coeffs(
    coeffs: Sequence[Sequence[tuple[int, int, float]]],
) -> tuple[np.ndarray, np.ndarray]:
    """Flatten per-component coefficient lists into one array plus counts.

    Parameters
    ----------
    coeffs
        For each component, a sequence of ``(n1, n2, value)``.

    Returns
    -------
    flat
        Structured array of :data:`SHAPELET_COEFF_DTYPE`.
    counts
        Number of coefficients belonging to each component.
    """
    counts = np.array([len(c) for c in coeffs], dtype=np.int64)
    flat = _coeffs_from_rows([tuple(c) for comp in coeffs for c in comp])
    return flat, counts


def coeff_offsets(coeffs_per_component: np.ndarray) -> np.ndarray:
    """Offset of each component's first coefficient in the flattened array."""
    counts = np.asarray(coeffs_per_component, dtype=np.int64)
    offsets = np.zeros(counts.size, dtype=np.int64)
    np.cumsum(counts[:-1], out=offsets[1:])
    return offsets


@dataclass
class PointComponents:
    """Point-source components.

    Parameters
    ----------
    lmns
        Direction cosines, shape ``(NCOMP, 3)``.
    flux_jones
        Instrumental flux densities, shape ``(NFREQS, NCOMP, 2, 2)``.
    """

    lmns: np.ndarray
    flux_jones: np.ndarray

    def __post_init__(self):
        self.lmns = _as_lmns(self.lmns)
        self.flux_jones = _as_flux_jones(self.flux_jones, len(self.lmns))

    def __len__(self) -> int:
        return len(self.lmns)


@dataclass
class GaussianComponents(PointComponents):
    """Gaussian-source components.

    ``gaussian_params`` has shape ``(NCOMP, 3)``: major axis, minor axis (FWHM,
    radians) and position angle (radians).
    """

    gaussian_params: np.ndarray = None

    def __post_init__(self):
        super().__post_init__()
        self.gaussian_params = _as_gaussian_params(self.gaussian_params, len(self))


@dataclass
class ShapeletComponents(GaussianComponents):
    """Shapelet-source components.

    Parameters
    ----------
    shapelet_uvs
        UV coordinates of each baseline computed as if the component were the
        phase centre [metres], shape ``(NBLS, NCOMP, 2)``.
    shapelet_coeffs
        Flattened coefficients of all components, :data:`SHAPELET_COEFF_DTYPE`.
    coeffs_per_component
        Number of coefficients of each component, shape ``(NCOMP,)``.
    """

    shapelet_uvs: np.ndarray = None
    shapelet_coeffs: np.ndarray = None
    coeffs_per_component: np.ndarray = None
    coeff_offsets: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        super().__post_init__()
        ncomp = len(self)

        uvs = np.ascontiguousarray(self.shapelet_uvs, dtype=np.float64)
        if uvs.ndim != 3 or uvs.shape[1:] != (ncomp, 2):
            raise ValueError(
                f"shapelet_uvs must have shape (NBLS, {ncomp}, 2), got {uvs.shape}"
            )
        self.shapelet_uvs = uvs

        coeffs = np.asarray(self.shapelet_coeffs)
        if coeffs.dtype != SHAPELET_COEFF_DTYPE:
            coeffs = _coeffs_from_rows(coeffs.tolist())
        self.shapelet_coeffs = np.ascontiguousarray(coeffs.reshape(-1))

        counts = np.ascontiguousarray(self.coeffs_per_component, dtype=np.int64)
        if counts.shape != (ncomp,):
            raise ValueError(
                f"coeffs_per_component must have shape ({ncomp},), got {counts.shape}"
            )
        if np.any(counts < 0):
            raise ValueError("coeffs_per_component must be non-negative")
        if counts.sum() != self.shapelet_coeffs.size:
            raise ValueError(
                f"coeffs_per_component sums to {counts.sum()}, but there are "
                f"{self.shapelet_coeffs.size} shapelet coefficients"
            )
        if np.any(self.shapelet_coeffs["n1"] < 0) or np.any(
            self.shapelet_coeffs["n2"] < 0
        ):
            raise ValueError("shapelet basis orders must be non-negative")
        self.coeffs_per_component = counts
        self.coeff_offsets = coeff_offsets(counts)

    @classmethod
    def from_coeff_lists(
        cls,
        lmns,
        flux_jones,
        gaussian_params,
        shapelet_uvs,
        coeffs: Sequence[Sequence[tuple[int, int, float]]],
    ) -> ShapeletComponents:
        """Build from a ragged list of per-component ``(n1, n2, value)`` lists."""
        flat, counts = flatten_shapelet_coeffs(coeffs)
        return cls(
            lmns=lmns,
            flux_jones=flux_jones,
            gaussian_params=gaussian_params,
            shapelet_uvs=shapelet_uvs,
            shapelet_coeffs=flat,
            coeffs_per_component=counts,
        )

    def component_coeffs(self, i: int) -> np.ndarray:
        """The coefficients belonging to component ``i``."""
        start = self.coeff_offsets[i]
        return self.shapelet_coeffs[start : start + self.coeffs_per_component[i]]
