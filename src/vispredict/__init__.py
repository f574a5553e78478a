"""Predict sky-model visibilities from point, Gaussian and shapelet components."""

from importlib.metadata import PackageNotFoundError, version

try:
    # Change here if project is renamed and does not equal the package name
    dist_name = __name__
    __version__ = version(dist_name)
except PackageNotFoundError:  # pragma: no cover
    __version__ = "unknown"
finally:
    del version, PackageNotFoundError

try:
    import cupy

    HAVE_GPU = True
except ImportError:
    HAVE_GPU = False


from . import cpu
from .components import GaussianComponents, PointComponents, ShapeletComponents
from .core.beams import BeamTables
from .errors import (
    AllocationError,
    CopyError,
    DeviceError,
    LaunchError,
    SynchronizeError,
)
from .shapelets import ShapeletBasis
from .wrapper import model_timestep

if HAVE_GPU:
    from . import gpu
