"""Beam tables and the per-cell beam correction."""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass

from .. import jones


@dataclass
class BeamTables:
    """Precomputed beam responses for one timestep.

    Beam responses are looked up by a key ``(tile_map[tile], freq_map[ifreq])``,
    i.e. a pair of (unique tile, unique frequency) indices. ``jones_map`` turns
    the key into an index into ``beam_jones``, and ``norm_jones`` holds the
    response each beam is normalised by.

    Parameters
    ----------
    jones_map
        Index into ``beam_jones`` for each key, shape ``(NUTILES, NUFREQS)``.
    beam_jones
        Resolved beam responses, shape ``(NJONES, 2, 2)``.
    norm_jones
        Normalisation response for each key, shape ``(NUTILES, NUFREQS, 2, 2)``.
    tile_map
        Unique-tile index of each tile, shape ``(NTILES,)``. Defaults to
        ``arange(NTILES)``, which requires ``NUTILES == NTILES``.
    freq_map
        Unique-frequency index of each frequency, shape ``(NFREQS,)``. Defaults
        to ``arange(NFREQS)``, which requires ``NUFREQS == NFREQS``.
    coeffs
        Opaque beam-coefficient blob. It is kept resident on the device next to
        the resolved tables but is never interpreted.
    """

    jones_map: np.ndarray
    beam_jones: np.ndarray
    norm_jones: np.ndarray
    tile_map: np.ndarray | None = None
    freq_map: np.ndarray | None = None
    coeffs: np.ndarray | bytes | None = None

    def __post_init__(self):
        self.jones_map = np.ascontiguousarray(self.jones_map, dtype=np.int64)
        if self.jones_map.ndim != 2:
            raise ValueError(
                f"jones_map must have shape (NUTILES, NUFREQS), got {self.jones_map.shape}"
            )

        self.beam_jones = np.ascontiguousarray(self.beam_jones, dtype=np.complex128)
        if self.beam_jones.ndim != 3 or self.beam_jones.shape[1:] != (2, 2):
            raise ValueError(
                f"beam_jones must have shape (NJONES, 2, 2), got {self.beam_jones.shape}"
            )

        if self.jones_map.size and (
            self.jones_map.min() < 0 or self.jones_map.max() >= len(self.beam_jones)
        ):
            raise ValueError("jones_map contains indices outside of beam_jones")

        self.norm_jones = np.ascontiguousarray(self.norm_jones, dtype=np.complex128)
        if self.norm_jones.shape != self.jones_map.shape + (2, 2):
            raise ValueError(
                f"norm_jones must have shape {self.jones_map.shape + (2, 2)}, "
                f"got {self.norm_jones.shape}"
            )

        if self.coeffs is None:
            self.coeffs = np.zeros(0, dtype=np.uint8)
        elif isinstance(self.coeffs, (bytes, bytearray)):
            self.coeffs = np.frombuffer(self.coeffs, dtype=np.uint8)
        else:
            self.coeffs = np.ascontiguousarray(self.coeffs).view(np.uint8).reshape(-1)

    @property
    def num_unique_tiles(self) -> int:
        """Number of unique tiles in the key space."""
        return self.jones_map.shape[0]

    @property
    def num_unique_freqs(self) -> int:
        """Number of unique frequencies in the key space."""
        return self.jones_map.shape[1]

    def resolve_maps(self, num_tiles: int, num_freqs: int) -> tuple[np.ndarray, np.ndarray]:
        """Get ``tile_map`` and ``freq_map``, defaulted and checked.

        Returns
        -------
        tile_map, freq_map
            int32 arrays of length ``num_tiles`` and ``num_freqs``.
        """
        tile_map = self._resolve_map(
            self.tile_map, num_tiles, self.num_unique_tiles, "tile"
        )
        freq_map = self._resolve_map(
            self.freq_map, num_freqs, self.num_unique_freqs, "freq"
        )
        return tile_map, freq_map

    @staticmethod
    def _resolve_map(mapping, n: int, nunique: int, name: str) -> np.ndarray:
        if mapping is None:
            if n != nunique:
                raise ValueError(
                    f"{name}_map must be given when there are {n} {name}s "
                    f"but {nunique} unique {name}s"
                )
            return np.arange(n, dtype=np.int32)

        mapping = np.ascontiguousarray(mapping, dtype=np.int32)
        if mapping.shape != (n,):
            raise ValueError(f"{name}_map must have shape ({n},), got {mapping.shape}")
        if n and (mapping.min() < 0 or mapping.max() >= nunique):
            raise ValueError(f"{name}_map contains indices outside of [0, {nunique})")
        return mapping

    @classmethod
    def identity(cls, num_tiles: int, num_freqs: int) -> BeamTables:
        """Tables whose every response is the identity."""
        return cls(
            jones_map=np.zeros((1, 1), dtype=np.int64),
            beam_jones=jones.identity((1,)),
            norm_jones=jones.identity((1, 1)),
            tile_map=np.zeros(num_tiles, dtype=np.int32),
            freq_map=np.zeros(num_freqs, dtype=np.int32),
        )


def beam_correct(
    vis,
    antpairs,
    tile_map,
    freq_map,
    jones_map,
    beam_jones,
    norm_jones,
):
    """Apply the normalised beam of both tiles of each baseline.

    Parameters
    ----------
    vis
        Accumulated visibilities, shape ``(NBLS, NFREQS, 2, 2)``.
    antpairs
        Tile indices of each baseline, shape ``(NBLS, 2)``.
    tile_map, freq_map, jones_map, beam_jones, norm_jones
        Beam tables as in :class:`BeamTables` (possibly device-resident).

    Returns
    -------
    vis
        ``B1 · vis · B2^H`` in each cell, with ``Bk`` the normalised beam of
        tile k.
    """
    f = freq_map[None, :]

    def tile_beam(tiles):
        key_t = tile_map[tiles][:, None]
        return jones.normalise(beam_jones[jones_map[key_t, f]], norm_jones[key_t, f])

    b1 = tile_beam(antpairs[:, 0])
    b2 = tile_beam(antpairs[:, 1])
    return jones.apply_beam(vis, b1, b2).astype(vis.dtype, copy=False)
