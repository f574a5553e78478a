"""Global configuration for pytest."""

import pytest

from vispredict._test_utils import get_standard_beam, get_standard_sky_params
from vispredict.shapelets import ShapeletBasis


@pytest.fixture(scope="session")
def basis():
    """Default table of shapelet basis functions."""
    return ShapeletBasis.default()


@pytest.fixture(scope="session")
def sky():
    """Standard small random sky: uvws, freqs, points, gaussians, shapelets."""
    return get_standard_sky_params()


@pytest.fixture(scope="session")
def beam():
    """Random beam tables matching the standard sky."""
    return get_standard_beam()
