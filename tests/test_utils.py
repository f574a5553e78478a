"""Test the utils module."""

import numpy as np
import pytest

from vispredict import _utils


def test_human_readable_size():
    """Test the human_readable_size function."""
    assert _utils.human_readable_size(0) == "0.00 B"
    assert _utils.human_readable_size(1023) == "1023.00 B"
    assert _utils.human_readable_size(1024) == "1.00 KiB"
    assert _utils.human_readable_size(1024**3) == "1.00 GiB"
    assert _utils.human_readable_size(1024**6) == "1024.00 PiB"
    assert (
        _utils.human_readable_size(-2048, decimal_places=1, indicate_sign=True)
        == "-2.0 KiB"
    )


def test_ceildiv():
    assert _utils.ceildiv(10, 5) == 2
    assert _utils.ceildiv(11, 5) == 3
    assert _utils.ceildiv(1, 256) == 1


@pytest.mark.parametrize(
    "nthreads,ncells,expected",
    [
        (256, 1000, ((4,), (256,))),
        (256, 256, ((1,), (256,))),
        (256, 3, ((1,), (3,))),
        (128, 257, ((3,), (128,))),
    ],
)
def test_get_launch_config(nthreads, ncells, expected):
    assert _utils.get_launch_config(nthreads, ncells) == expected


def test_get_launch_config_bad_input():
    with pytest.raises(ValueError, match="nthreads"):
        _utils.get_launch_config(0, 10)
    with pytest.raises(ValueError, match="ncells"):
        _utils.get_launch_config(256, 0)


def test_get_dtypes():
    assert _utils.get_dtypes(1) == (np.float32, np.complex64)
    assert _utils.get_dtypes(2) == (np.float64, np.complex128)


def test_estimate_context_memory():
    sizes = _utils.estimate_context_memory(
        nbl=6, nfreq=3, ntiles=4, sbf_l=11, sbf_n=2, precision=2
    )
    assert sizes["vis"] == 6 * 3 * 4 * 8
    assert sizes["uvws"] == 6 * 3 * 8
    assert sizes["shapelet_basis"] == 22 * 8
    assert sizes["jones_map"] == sizes["norm_jones"] == sizes["tile_map"] == 0

    single = _utils.estimate_context_memory(
        nbl=6,
        nfreq=3,
        ntiles=4,
        sbf_l=11,
        sbf_n=2,
        precision=1,
        nbeam_jones=5,
        nbeam_keys=12,
        nbeam_coeff_bytes=100,
    )
    # visibilities are always complex64
    assert single["vis"] == sizes["vis"]
    assert single["uvws"] == sizes["uvws"] // 2
    assert single["beam_jones"] == 5 * 4 * 8
    assert single["norm_jones"] == 12 * 4 * 8
    assert single["beam_coeffs"] == 100
