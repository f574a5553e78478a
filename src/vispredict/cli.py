"""Profile the code with a simple scalable sky model.

Running ``vispredict profile`` models a random sky of point, Gaussian and
shapelet components for a number of timesteps, and writes a summary of the
time spent in each step. The summary is also saved in pickle format to a file
annotated with the inputs (e.g. ntiles, nfreqs, npoints).
"""

from __future__ import annotations

import click
import logging
import numpy as np
import pickle
import psutil
import time
from pathlib import Path
from rich.console import Console
from rich.logging import RichHandler
from rich.rule import Rule

from . import HAVE_GPU
from ._test_utils import get_standard_beam, get_standard_sky_params
from ._utils import log_progress
from .shapelets import ShapeletBasis
from .wrapper import get_backend

logging.basicConfig(handlers=[RichHandler(rich_tracebacks=True)])
logger = logging.getLogger("vispredict")

cns = Console()

STEPS = ("Create Context", "Clear", "Points", "Gaussians", "Shapelets", "Read Back")

main = click.Group()


def get_label(**kwargs):
    """Get a label for the output profile files."""
    precision = 2 if kwargs["double_precision"] else 1
    return (
        "nt{ntiles}_nf{nfreqs}_np{npoints}_ng{ngaussians}_ns{nshapelets}_"
        "nts{ntimes}_b{beam}_g{gpu}_pr{precision}"
    ).format(precision=precision, **kwargs)


def run_profile(
    ntiles,
    nfreqs,
    npoints,
    ngaussians,
    nshapelets,
    ntimes,
    gpu,
    double_precision,
    beam,
    outdir,
    log_level,
    nthreads,
):
    """Run the script."""
    if not HAVE_GPU and gpu:
        raise RuntimeError("Cannot run GPU version without GPU dependencies installed!")

    logger.setLevel(log_level.upper())

    beam_tables = get_standard_beam(ntiles, nfreqs) if beam else None
    basis = ShapeletBasis.default() if nshapelets else None
    precision = 2 if double_precision else 1

    cns.print(Rule("Running vispredict profile"))
    cns.print(f"  NTILES:           {ntiles:>7}")
    cns.print(f"  NFREQS:           {nfreqs:>7}")
    cns.print(f"  NPOINTS:          {npoints:>7}")
    cns.print(f"  NGAUSSIANS:       {ngaussians:>7}")
    cns.print(f"  NSHAPELETS:       {nshapelets:>7}")
    cns.print(f"  NTIMES:           {ntimes:>7}")
    cns.print(f"  GPU:              {gpu:>7}")
    cns.print(f"  DOUBLE-PRECISION: {double_precision:>7}")
    cns.print(f"  BEAM:             {beam:>7}")
    cns.print(Rule())

    ctx_cls, modeller_cls = get_backend(gpu)
    kwargs = {"nthreads": nthreads} if gpu else {}
    timings = dict.fromkeys(STEPS, 0.0)

    def timed(step, fnc, *args, **kw):
        t0 = time.perf_counter()
        out = fnc(*args, **kw)
        timings[step] += time.perf_counter() - t0
        return out

    vis = np.zeros((ntiles * (ntiles - 1) // 2, nfreqs, 2, 2), dtype=np.complex64)
    init_time = time.time()
    pr = psutil.Process()
    prev_time, last_mem = init_time, pr.memory_info().rss

    for it in range(ntimes):
        # rotate the phase centre by ~1 minute of hour angle per timestep
        uvws, freqs, points, gaussians, shapelets = get_standard_sky_params(
            ntiles,
            nfreqs,
            npoints,
            ngaussians,
            nshapelets,
            ncoeffs=20,
            ha=it * 2 * np.pi / 1440,
        )
        ctx = timed(
            "Create Context",
            ctx_cls.create,
            uvws,
            freqs,
            vis,
            shapelet_basis=basis,
            beam=beam_tables,
            precision=precision,
        )
        with ctx:
            modeller = modeller_cls(ctx, **kwargs)
            timed("Clear", ctx.clear_visibilities)
            timed("Points", modeller.model_points, points.lmns, points.flux_jones)
            timed(
                "Gaussians",
                modeller.model_gaussians,
                gaussians.lmns,
                gaussians.flux_jones,
                gaussians.gaussian_params,
            )
            timed(
                "Shapelets",
                modeller.model_shapelets,
                shapelets.lmns,
                shapelets.flux_jones,
                shapelets.gaussian_params,
                shapelets.shapelet_uvs,
                shapelets.shapelet_coeffs,
                shapelets.coeffs_per_component,
            )
            ctx.synchronize()
            timed("Read Back", ctx.read_back_visibilities)

        if not (it % max(1, ntimes // 10)):
            prev_time, last_mem = log_progress(
                init_time, prev_time, it + 1, ntimes, pr, last_mem
            )

    total = time.time() - init_time

    cns.print()
    cns.print(Rule("Summary of timings"))
    cns.print(f"         Total Time:            {total:.3e} seconds")
    for step, _time in timings.items():
        cns.print(
            f"{step:>19}: {ntimes:>4} hits, {_time:.3e} seconds, "
            f"{_time / ntimes:.3e} sec/hit, {100 * _time / total:4.2f}%"
        )
    cns.print(Rule())

    str_id = get_label(
        ntiles=ntiles,
        nfreqs=nfreqs,
        npoints=npoints,
        ngaussians=ngaussians,
        nshapelets=nshapelets,
        ntimes=ntimes,
        beam=beam,
        gpu=gpu,
        double_precision=double_precision,
    )
    outdir = Path(outdir).expanduser().absolute()
    with open(outdir / f"summary-stats-{str_id}.pkl", "wb") as fl:
        pickle.dump(timings, fl)

    return timings


@main.command()
@click.option("-a", "--ntiles", default=8)
@click.option("-f", "--nfreqs", default=16)
@click.option("-p", "--npoints", default=100)
@click.option("-G", "--ngaussians", default=10)
@click.option("-s", "--nshapelets", default=2)
@click.option("-t", "--ntimes", default=1)
@click.option("-g/-c", "--gpu/--cpu", default=False)
@click.option("--double-precision/--single-precision", default=True)
@click.option("--beam/--no-beam", default=False)
@click.option("-o", "--outdir", default=".")
@click.option(
    "-l",
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
)
@click.option("--nthreads", default=256, help="Threads per block on the GPU")
def profile(**kwargs):
    """Profile modelling of a random sky."""
    run_profile(**kwargs)
