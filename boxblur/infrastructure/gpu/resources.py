from typing import Any, Optional

import numpy as np
import wgpu  # type: ignore

from boxblur.infrastructure.gpu.device import GPUDevice


class GPUBuffer:
    """
    Thin owner of a wgpu buffer.
    """

    def __init__(self, size: int, usage: int, label: str = "") -> None:
        device = GPUDevice.get().device
        if device is None:
            raise RuntimeError("GPU device not available")
        self.size = size
        self.label = label
        self.buffer: Optional[Any] = device.create_buffer(size=size, usage=usage, label=label)

    def upload(self, data: np.ndarray, offset: int = 0) -> None:
        device = GPUDevice.get().device
        if device is None or self.buffer is None:
            raise RuntimeError("GPU buffer not available")
        device.queue.write_buffer(self.buffer, offset, np.ascontiguousarray(data))

    def read(self) -> np.ndarray:
        """
        Blocking readback through a staging buffer. Returns raw bytes as uint8.
        """
        device = GPUDevice.get().device
        if device is None or self.buffer is None:
            raise RuntimeError("GPU buffer not available")
        staging = device.create_buffer(
            size=self.size,
            usage=wgpu.BufferUsage.COPY_DST | wgpu.BufferUsage.MAP_READ,
        )
        encoder = device.create_command_encoder()
        encoder.copy_buffer_to_buffer(self.buffer, 0, staging, 0, self.size)
        device.queue.submit([encoder.finish()])
        staging.map_sync(wgpu.MapMode.READ)
        data = np.frombuffer(staging.read_mapped(), dtype=np.uint8).copy()
        staging.unmap()
        staging.destroy()
        return data

    def destroy(self) -> None:
        if self.buffer is not None:
            self.buffer.destroy()
            self.buffer = None
