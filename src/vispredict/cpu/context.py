"""Host-memory model context."""

import numpy as np

from ..core.context import ModelContext
from ..errors import AllocationError, CopyError


class CPUModelContext(ModelContext):
    """Model context whose "device" buffers are numpy arrays in host memory."""

    def _allocate(self, shape, dtype):
        try:
            return np.empty(shape, dtype=dtype)
        except MemoryError as e:
            raise AllocationError(
                f"could not allocate {shape} buffer of {np.dtype(dtype)}"
            ) from e

    def _copy_to_device(self, dst, src):
        try:
            np.copyto(dst, src, casting="same_kind")
        except (TypeError, ValueError) as e:
            raise CopyError(f"could not copy host array into {dst.shape} buffer") from e

    def _copy_to_host(self, dst, src):
        try:
            np.copyto(dst, src, casting="same_kind")
        except (TypeError, ValueError) as e:
            raise CopyError(f"could not copy {src.shape} buffer to the host") from e

    def synchronize(self):
        """Nothing to wait for: numpy work completes eagerly."""
