import datetime
import itertools
import logging
import numpy as np
import psutil
import time
from typing import Union

try:
    import cupy as cp

    ArrayType = Union[np.ndarray, cp.ndarray]
    HAVE_CUDA = True
except ImportError:
    ArrayType = np.ndarray
    HAVE_CUDA = False

logger = logging.getLogger(__name__)


def ceildiv(a: int, b: int) -> int:
    """Ceiling division for integers.

    From https://stackoverflow.com/a/17511341/1467820
    """
    return -(a // -b)


def human_readable_size(size, decimal_places=2, indicate_sign=False):
    """Get a human-readable data size.

    From: https://stackoverflow.com/a/43690506/1467820
    """
    for unit in ["B", "KiB", "MiB", "GiB", "TiB", "PiB"]:
        if abs(size) < 1024.0:
            break
        if unit != "PiB":
            size /= 1024.0

    if indicate_sign:
        return f"{size:+.{decimal_places}f} {unit}"
    else:
        return f"{size:.{decimal_places}f} {unit}"


def logdebug(name: str, x: ArrayType):
    """Debug logging of the value of an array."""
    if logger.isEnabledFor(logging.DEBUG) and x.size:  # pragma: no cover
        loc = "GPU" if HAVE_CUDA and isinstance(x, cp.ndarray) else "CPU"

        cornerstr = "".join(
            f"\t{idx}: {x[idx]}\n"
            for idxc in itertools.combinations_with_replacement([0, -1], x.ndim)
            for idx in set(itertools.permutations(idxc))
        )
        logger.debug(f"{loc}: {name} <{x.shape}> [{x.dtype}]:\n{cornerstr}")


def log_progress(
    start_time: float,
    prev_time: float,
    iters: int,
    niters: int,
    pr: psutil.Process,
    last_mem: float,
) -> tuple[float, int]:
    """Logging of progress."""
    if not logger.isEnabledFor(logging.INFO):
        return prev_time, last_mem

    t = time.time()
    lapsed = datetime.timedelta(seconds=(t - prev_time))
    total = datetime.timedelta(seconds=(t - start_time))
    per_iter = total / iters
    expected = per_iter * niters

    rss = pr.memory_info().rss
    mem = human_readable_size(rss)
    memdiff = human_readable_size(rss - last_mem, indicate_sign=True)

    logger.info(
        f"""
        Progress Info   [{iters}/{niters} timesteps ({100 * iters / niters:.1f}%)]
            -> Update Time:   {lapsed}
            -> Total Time:    {total} [{per_iter} per timestep]
            -> Expected Time: {expected} [{expected - total} remaining]
            -> Memory Usage:  {mem}  [{memdiff}]
        """
    )

    return t, rss


def estimate_context_memory(
    nbl: int,
    nfreq: int,
    ntiles: int,
    sbf_l: int,
    sbf_n: int,
    precision: int,
    nbeam_jones: int = 0,
    nbeam_keys: int = 0,
    nbeam_coeff_bytes: int = 0,
) -> dict[str, int]:
    """
    Estimate the size (in bytes) of every buffer owned by a model context.

    Parameters
    ----------
    nbl : int
        The number of baselines.
    nfreq : int
        The number of frequencies.
    ntiles : int
        The number of tiles.
    sbf_l, sbf_n : int
        The number of samples and orders in the shapelet basis table.
    precision : int
        The precision of the computation (1 or 2).
    nbeam_jones : int
        The number of resolved beam Jones matrices.
    nbeam_keys : int
        The number of (unique tile, unique frequency) keys in the beam tables.
    nbeam_coeff_bytes : int
        The size of the opaque beam-coefficient blob.

    Returns
    -------
    dict
        Size in bytes of each buffer.

    Examples
    --------
    >>> estimate_context_memory(3, 2, 3, 0, 0, 2)["vis"]
    192
    """
    rsize = 4 * precision
    csize = 2 * rsize

    return {
        "uvws": 3 * nbl * rsize,
        "freqs": nfreq * rsize,
        "antpairs": 2 * nbl * 4,
        "shapelet_basis": sbf_l * sbf_n * rsize,
        "beam_coeffs": nbeam_coeff_bytes,
        "tile_map": ntiles * 4 if nbeam_keys else 0,
        "freq_map": nfreq * 4 if nbeam_keys else 0,
        "jones_map": nbeam_keys * 8,
        "beam_jones": 4 * nbeam_jones * csize,
        "norm_jones": 4 * nbeam_keys * csize,
        "vis": 4 * nbl * nfreq * 8,
    }


def get_launch_config(nthreads: int, ncells: int) -> tuple[tuple[int], tuple[int]]:
    """Get a one-dimensional (grid, block) launch configuration.

    Parameters
    ----------
    nthreads : int
        The maximum number of threads per block.
    ncells : int
        The number of cells, one thread each.

    Returns
    -------
    grid, block
        Tuples suitable for passing to a cupy kernel.

    Examples
    --------
    >>> get_launch_config(256, 1000)
    ((4,), (256,))
    """
    if nthreads < 1:
        raise ValueError(f"nthreads must be positive, got {nthreads}")
    if ncells < 1:
        raise ValueError(f"ncells must be positive, got {ncells}")

    block = min(nthreads, ncells)
    return (ceildiv(ncells, block),), (block,)


def get_dtypes(precision: int):
    """
    Get the data types for the given precision.

    Parameters
    ----------
    precision : int
        The precision. 1 for single, 2 for double.

    Returns
    -------
    real_dtype
        The real data type.
    complex_dtype
        The complex data type.

    Examples
    --------
    >>> get_dtypes(1) == (np.float32, np.complex64)
    True
    """
    if precision == 1:
        real_dtype = np.float32
        complex_dtype = np.complex64
    else:
        real_dtype = np.float64
        complex_dtype = np.complex128

    return real_dtype, complex_dtype
