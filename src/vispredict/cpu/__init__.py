"""CPU (numpy) implementation of the modelling engine."""

from .context import CPUModelContext
from .model import CPUSkyModeller
