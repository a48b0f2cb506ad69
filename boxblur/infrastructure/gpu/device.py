import threading
from typing import Any, Dict, Optional

import wgpu  # type: ignore

from boxblur.kernel.system.logging import get_logger

logger = get_logger(__name__)


class GPUDevice:
    """
    Process-wide WebGPU adapter/device pair. Lazily acquired, never raises on lookup.
    """

    _instance: Optional["GPUDevice"] = None
    _lock = threading.Lock()

    def __init__(self) -> None:
        self.adapter: Optional[Any] = None
        self.device: Optional[Any] = None
        self.limits: Dict[str, Any] = {}
        self.adapter_name: str = "unavailable"
        self._init_device()

    @classmethod
    def get(cls) -> "GPUDevice":
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def _init_device(self) -> None:
        try:
            adapter = wgpu.gpu.request_adapter_sync(power_preference="high-performance")
            if adapter is None:
                logger.warning("GPU: no WebGPU adapter found")
                return
            self.adapter = adapter
            self.device = adapter.request_device_sync()
            self.limits = dict(self.device.limits)
            info = getattr(adapter, "info", None) or {}
            self.adapter_name = str(info.get("device", "") or info.get("description", "") or "webgpu")
            logger.info(f"GPU: using adapter {self.adapter_name}")
        except Exception as e:
            logger.warning(f"GPU: device initialization failed: {e}")
            self.adapter = None
            self.device = None

    @property
    def is_available(self) -> bool:
        return self.device is not None
