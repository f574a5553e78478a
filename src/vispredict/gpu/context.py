"""Device-memory model context."""

import cupy as cp
import logging
import numpy as np

from .._utils import human_readable_size
from ..core.context import ModelContext
from ..errors import AllocationError, CopyError, LaunchError, SynchronizeError

logger = logging.getLogger(__name__)


class GPUModelContext(ModelContext):
    """Model context whose buffers live in GPU memory (allocated through cupy)."""

    def setup(self):
        """Allocate device buffers and upload the inputs."""
        self._log_free_memory("before")
        super().setup()
        self._log_free_memory("after")

    @staticmethod
    def _log_free_memory(when: str):
        free, total = cp.cuda.Device().mem_info
        logger.debug(
            f"GPU memory {when} setup: {human_readable_size(free)} free of "
            f"{human_readable_size(total)}"
        )

    def _allocate(self, shape, dtype):
        try:
            return cp.empty(shape, dtype=dtype)
        except (
            cp.cuda.memory.OutOfMemoryError,
            cp.cuda.runtime.CUDARuntimeError,
            cp.cuda.driver.CUDADriverError,
        ) as e:
            raise AllocationError(
                f"could not allocate {shape} buffer of {np.dtype(dtype)} on the GPU"
            ) from e

    def _copy_to_device(self, dst, src):
        try:
            dst.set(np.ascontiguousarray(src, dtype=dst.dtype))
        except (
            cp.cuda.runtime.CUDARuntimeError,
            cp.cuda.driver.CUDADriverError,
            TypeError,
            ValueError,
        ) as e:
            raise CopyError(f"could not copy host array into {dst.shape} buffer") from e

    def _copy_to_host(self, dst, src):
        try:
            src.get(out=dst)
        except (
            cp.cuda.runtime.CUDARuntimeError,
            cp.cuda.driver.CUDADriverError,
            TypeError,
            ValueError,
        ) as e:
            raise CopyError(f"could not copy {src.shape} buffer to the host") from e

    def synchronize(self):
        """Block until all work on the current device is done."""
        try:
            cp.cuda.Device().synchronize()
        except (cp.cuda.runtime.CUDARuntimeError, cp.cuda.driver.CUDADriverError) as e:
            raise SynchronizeError("device reported an error on synchronize") from e

    def clear_visibilities(self):
        """Zero the device visibility buffer."""
        try:
            self.d_vis.fill(0)
        except (cp.cuda.runtime.CUDARuntimeError, cp.cuda.driver.CUDADriverError) as e:
            raise LaunchError("could not clear the visibility buffer") from e

    def _release(self):
        cp.get_default_memory_pool().free_all_blocks()
