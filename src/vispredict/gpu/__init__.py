"""GPU (cupy) implementation of the modelling engine."""

from .context import GPUModelContext
from .model import GPUSkyModeller
