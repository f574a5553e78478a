"""Exceptions raised by device-facing operations.

Every device-facing operation either completes or raises one of these. None of
them is transient: callers should abort the current timestep and propagate.
"""


class DeviceError(RuntimeError):
    """Base class for failures reported by the compute device."""


class AllocationError(DeviceError):
    """A device buffer could not be allocated."""


class CopyError(DeviceError):
    """A host-to-device or device-to-host copy failed."""


class LaunchError(DeviceError):
    """A kernel could not be compiled or dispatched."""


class SynchronizeError(DeviceError):
    """The device reported an error while synchronizing after a launch."""
