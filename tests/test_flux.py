"""Tests of the flux-density helpers."""

import numpy as np

from vispredict import flux


def test_stokes_to_instrumental():
    j = flux.stokes_to_instrumental(1.0, 0.2, 0.3, 0.4)
    assert j.shape == (2, 2)
    np.testing.assert_allclose(j, [[1.2, 0.3 + 0.4j], [0.3 - 0.4j, 0.8]])


def test_stokes_to_instrumental_broadcasts():
    j = flux.stokes_to_instrumental(np.ones(5), v=np.arange(5))
    assert j.shape == (5, 2, 2)
    np.testing.assert_allclose(j[:, 0, 1].imag, np.arange(5))
    np.testing.assert_allclose(j[:, 1, 1], 1.0)


def test_power_law_at_reference_frequency():
    ref = flux.stokes_to_instrumental([1.0, 2.0], [0.5, 0.0])
    out = flux.power_law_flux_jones(ref, [-0.8, 0.3], [flux.POWER_LAW_FD_REF_FREQ])
    assert out.shape == (1, 2, 2, 2)
    np.testing.assert_allclose(out[0], ref)


def test_power_law_scaling():
    ref = flux.stokes_to_instrumental([1.0])
    out = flux.power_law_flux_jones(ref, [-1.0], [75e6, 300e6])
    np.testing.assert_allclose(out[:, 0, 0, 0].real, [2.0, 0.5])
    np.testing.assert_allclose(flux.calc_flux_ratio(300e6, 150e6, 2.0), 4.0)


def test_curved_power_law():
    ref = flux.stokes_to_instrumental([1.0, 3.0])
    freqs = np.array([100e6, 150e6, 220e6])
    flat = flux.power_law_flux_jones(ref, [-0.7, -0.5], freqs)

    np.testing.assert_allclose(
        flux.curved_power_law_flux_jones(ref, [-0.7, -0.5], [0.0, 0.0], freqs), flat
    )

    curved = flux.curved_power_law_flux_jones(ref, [-0.7, -0.5], [0.2, -0.1], freqs)
    # curvature only acts away from the reference frequency
    np.testing.assert_allclose(curved[1], flat[1])
    expected = np.exp(0.2 * np.log(100 / 150) ** 2)
    np.testing.assert_allclose(curved[0, 0], flat[0, 0] * expected)
