"""Tests of the component containers."""

import numpy as np
import pytest

from vispredict import components
from vispredict.components import (
    GaussianComponents,
    PointComponents,
    ShapeletComponents,
)
from vispredict.flux import stokes_to_instrumental


def _flux(nfreq, ncomp):
    return np.broadcast_to(stokes_to_instrumental(1.0), (nfreq, ncomp, 2, 2))


def test_point_components():
    pts = PointComponents([[0, 0, 1], [0.1, 0, np.sqrt(0.99)]], _flux(3, 2))
    assert len(pts) == 2
    assert pts.lmns.dtype == np.float64
    assert pts.flux_jones.dtype == np.complex128
    assert pts.flux_jones.flags.c_contiguous


def test_empty_point_components():
    pts = PointComponents(np.zeros((0, 3)), np.zeros((4, 0, 2, 2)))
    assert len(pts) == 0
    assert len(PointComponents([], np.zeros((4, 0, 2, 2)))) == 0


@pytest.mark.parametrize(
    "lmns,flux,match",
    [
        (np.zeros((2, 2)), np.zeros((1, 2, 2, 2)), "lmns"),
        (np.zeros((2, 3)), np.zeros((1, 3, 2, 2)), "flux_jones"),
        (np.zeros((2, 3)), np.zeros((2, 2, 2)), "flux_jones"),
    ],
)
def test_point_components_bad_shapes(lmns, flux, match):
    with pytest.raises(ValueError, match=match):
        PointComponents(lmns, flux)


def test_gaussian_components():
    g = GaussianComponents(np.zeros((2, 3)), _flux(1, 2), np.ones((2, 3)))
    assert g.gaussian_params.shape == (2, 3)

    with pytest.raises(ValueError, match="gaussian_params"):
        GaussianComponents(np.zeros((2, 3)), _flux(1, 2), np.ones((3, 3)))


def test_flatten_shapelet_coeffs():
    flat, counts = components.flatten_shapelet_coeffs(
        [[(0, 0, 1.0), (1, 2, 0.5)], [], [(3, 0, -2.0)]]
    )
    assert flat.dtype == components.SHAPELET_COEFF_DTYPE
    assert counts.tolist() == [2, 0, 1]
    assert flat["n1"].tolist() == [0, 1, 3]
    assert flat["value"].tolist() == [1.0, 0.5, -2.0]


def test_coeff_offsets():
    assert components.coeff_offsets([2, 0, 1, 4]).tolist() == [0, 2, 2, 3]
    assert components.coeff_offsets([]).tolist() == []


class TestShapeletComponents:
    def make(self, coeffs, nbl=3):
        ncomp = len(coeffs)
        return ShapeletComponents.from_coeff_lists(
            np.zeros((ncomp, 3)),
            _flux(2, ncomp),
            np.ones((ncomp, 3)),
            np.zeros((nbl, ncomp, 2)),
            coeffs,
        )

    def test_ragged_coefficients(self):
        comps = self.make([[(0, 0, 1.0)], [], [(1, 1, 2.0), (2, 0, 3.0)]])
        assert comps.coeff_offsets.tolist() == [0, 1, 1]
        assert comps.component_coeffs(1).size == 0
        assert comps.component_coeffs(2)["value"].tolist() == [2.0, 3.0]

    def test_from_arrays(self):
        flat, counts = components.flatten_shapelet_coeffs([[(0, 0, 1.0)], [(1, 0, 2.0)]])
        comps = ShapeletComponents(
            np.zeros((2, 3)),
            _flux(1, 2),
            np.ones((2, 3)),
            np.zeros((1, 2, 2)),
            flat,
            counts,
        )
        assert comps.component_coeffs(1)["n1"].tolist() == [1]

    def test_plain_tuples_are_converted(self):
        comps = ShapeletComponents(
            np.zeros((1, 3)),
            _flux(1, 1),
            np.ones((1, 3)),
            np.zeros((1, 1, 2)),
            [(2, 3, 0.5)],
            [1],
        )
        assert comps.shapelet_coeffs.dtype == components.SHAPELET_COEFF_DTYPE
        assert comps.shapelet_coeffs["n2"].tolist() == [3]

    def test_counts_must_match(self):
        flat, _ = components.flatten_shapelet_coeffs([[(0, 0, 1.0)], [(1, 0, 2.0)]])
        with pytest.raises(ValueError, match="sums to 1"):
            ShapeletComponents(
                np.zeros((2, 3)),
                _flux(1, 2),
                np.ones((2, 3)),
                np.zeros((1, 2, 2)),
                flat,
                [1, 0],
            )

    def test_negative_counts(self):
        flat, _ = components.flatten_shapelet_coeffs([[(0, 0, 1.0)]])
        with pytest.raises(ValueError, match="non-negative"):
            ShapeletComponents(
                np.zeros((2, 3)),
                _flux(1, 2),
                np.ones((2, 3)),
                np.zeros((1, 2, 2)),
                flat,
                [2, -1],
            )

    def test_negative_orders(self):
        with pytest.raises(ValueError, match="orders"):
            self.make([[(-1, 0, 1.0)]])

    def test_fractional_orders_from_lists(self):
        with pytest.raises(ValueError, match="integers"):
            self.make([[(1.5, 0, 1.0)]])

    def test_fractional_orders_from_float_array(self):
        with pytest.raises(ValueError, match="integers"):
            ShapeletComponents(
                np.zeros((1, 3)),
                _flux(1, 1),
                np.ones((1, 3)),
                np.zeros((1, 1, 2)),
                np.array([[2.0, 0.7, 0.5]]),
                [1],
            )

    def test_whole_float_orders_are_accepted(self):
        comps = ShapeletComponents(
            np.zeros((1, 3)),
            _flux(1, 1),
            np.ones((1, 3)),
            np.zeros((1, 1, 2)),
            np.array([[2.0, 3.0, 0.5]]),
            [1],
        )
        assert comps.shapelet_coeffs["n1"].tolist() == [2]
        assert comps.shapelet_coeffs["n2"].tolist() == [3]

    def test_bad_uvs(self):
        with pytest.raises(ValueError, match="shapelet_uvs"):
            ShapeletComponents.from_coeff_lists(
                np.zeros((2, 3)),
                _flux(1, 2),
                np.ones((2, 3)),
                np.zeros((3, 1, 2)),
                [[], []],
            )
