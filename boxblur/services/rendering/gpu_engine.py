import os
import time
from typing import Any, Dict, List, Tuple

import numpy as np
import wgpu  # type: ignore

from boxblur.domain.errors import ComputeError, ConfigError
from boxblur.domain.interfaces import LaunchContext
from boxblur.domain.models import Variant, tile_bytes, tile_shape
from boxblur.domain.types import OutputBuffer
from boxblur.infrastructure.gpu.device import GPUDevice
from boxblur.infrastructure.gpu.resources import GPUBuffer
from boxblur.infrastructure.gpu.shader_loader import ShaderLoader
from boxblur.kernel.system.logging import get_logger

logger = get_logger(__name__)

PACKAGE_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
SHADER_DIR = os.path.join(PACKAGE_ROOT, "features", "stencil", "shaders")
PARAMS_SIZE = 32


class GPUEngine:
    """
    WebGPU backend. One compute pass per launch; pipelines are cached per
    (variant, group shape, tile shape) since those are baked into the shader.
    """

    name = "wgpu"

    def __init__(self) -> None:
        self.gpu = GPUDevice.get()
        self._shaders = {
            Variant.TILED: os.path.join(SHADER_DIR, "tiled.wgsl"),
            Variant.NAIVE: os.path.join(SHADER_DIR, "naive.wgsl"),
        }
        self._pipelines: Dict[Tuple[Any, ...], Any] = {}

    @property
    def is_available(self) -> bool:
        return self.gpu.is_available

    def _check_limits(self, context: LaunchContext) -> None:
        """Rejects launches the adapter cannot run."""
        limits = self.gpu.limits
        launch = context.launch
        params = context.params
        max_inv = limits.get("max_compute_invocations_per_workgroup", 256)
        if launch.threads_per_group > max_inv:
            raise ConfigError("group exceeds device invocation limit", "gpu_launch", {**params, "limit": max_inv})
        if launch.local_width > limits.get("max_compute_workgroup_size_x", 256) or launch.local_height > limits.get(
            "max_compute_workgroup_size_y", 256
        ):
            raise ConfigError("group exceeds device workgroup size", "gpu_launch", params)
        max_groups = limits.get("max_compute_workgroups_per_dimension", 65535)
        if launch.groups_x > max_groups or launch.groups_y > max_groups:
            raise ConfigError("too many groups for device", "gpu_launch", {**params, "limit": max_groups})
        if context.variant == Variant.TILED:
            storage = limits.get("max_compute_workgroup_storage_size", 16384)
            if tile_bytes(context.mask, launch.group_shape) > storage:
                raise ConfigError("tile exceeds device workgroup storage", "gpu_launch", {**params, "limit": storage})

    def _get_pipeline(self, context: LaunchContext) -> Any:
        launch = context.launch
        constants: Dict[str, int] = {"LOCAL_W": launch.local_width, "LOCAL_H": launch.local_height}
        if context.variant == Variant.TILED:
            rows, cols = tile_shape(context.mask, launch.group_shape)
            constants.update({"TILE_W": cols, "TILE_H": rows})
        key = (context.variant, *sorted(constants.items()))
        if key not in self._pipelines:
            self._pipelines[key] = self._create_pipeline(self._shaders[context.variant], constants)
        return self._pipelines[key]

    def _create_pipeline(self, shader_path: str, constants: Dict[str, int]) -> Any:
        shader_module = ShaderLoader.load(shader_path, constants)
        assert self.gpu.device is not None
        return self.gpu.device.create_compute_pipeline(layout="auto", compute={"module": shader_module, "entry_point": "main"})

    def _pack_params(self, context: LaunchContext) -> np.ndarray:
        """width, height, left, up, right, down, pad, pad as u32."""
        dims = np.array([context.grid.width, context.grid.height], dtype=np.uint32)
        pad = np.zeros(2, dtype=np.uint32)
        return np.concatenate([dims, context.mask.to_array().astype(np.uint32), pad])

    def _dispatch_pass(self, encoder: Any, pipeline: Any, bindings: List[Tuple[int, GPUBuffer]], groups: Tuple[int, int]) -> None:
        """Configures and dispatches a compute pass."""
        entries = []
        for idx, res in bindings:
            if res.buffer is None:
                raise ValueError(f"GPUBuffer in binding {idx} is None")
            entries.append({"binding": idx, "resource": {"buffer": res.buffer, "offset": 0, "size": res.size}})

        assert self.gpu.device is not None
        try:
            bind_group = self.gpu.device.create_bind_group(layout=pipeline.get_bind_group_layout(0), entries=entries)
        except Exception as e:
            logger.error(f"Failed to create bind group: {e}")
            raise

        pass_enc = encoder.begin_compute_pass()
        pass_enc.set_pipeline(pipeline)
        pass_enc.set_bind_group(0, bind_group)
        pass_enc.dispatch_workgroups(groups[0], groups[1])
        pass_enc.end()

    def launch(self, context: LaunchContext) -> OutputBuffer:
        if not self.gpu.is_available:
            raise ComputeError("GPU not available", "gpu_launch", context.params)
        self._check_limits(context)

        device = self.gpu.device
        assert device is not None
        pipeline = self._get_pipeline(context)

        grid = context.grid
        nbytes = grid.width * grid.height * 4
        buffers: List[GPUBuffer] = []
        try:
            src = GPUBuffer(nbytes, wgpu.BufferUsage.STORAGE | wgpu.BufferUsage.COPY_DST, "boxblur_src")
            buffers.append(src)
            dst = GPUBuffer(nbytes, wgpu.BufferUsage.STORAGE | wgpu.BufferUsage.COPY_SRC, "boxblur_dst")
            buffers.append(dst)
            params = GPUBuffer(PARAMS_SIZE, wgpu.BufferUsage.UNIFORM | wgpu.BufferUsage.COPY_DST, "boxblur_params")
            buffers.append(params)

            src.upload(grid.samples.astype(np.float32))
            params.upload(self._pack_params(context))

            start = time.perf_counter()
            enc = device.create_command_encoder()
            self._dispatch_pass(
                enc,
                pipeline,
                [(0, src), (1, dst), (2, params)],
                (context.launch.groups_x, context.launch.groups_y),
            )
            device.queue.submit([enc.finish()])
            # map_sync inside read() blocks until the queue has drained
            raw = dst.read()
            context.metrics["elapsed_s"] = time.perf_counter() - start
            context.metrics["device"] = self.gpu.adapter_name
        finally:
            for buf in buffers:
                buf.destroy()

        return raw.view(np.float32).reshape(grid.height, grid.width).copy()
