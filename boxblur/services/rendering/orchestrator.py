import logging
from typing import Any, Callable, Dict, Optional, Union

import numpy as np

from boxblur.domain.errors import BlurError, ComputeError, ConfigError
from boxblur.domain.interfaces import IComputeBackend, LaunchContext
from boxblur.domain.models import Grid, GroupShape, Mask, OutputGrid, Variant, tile_shape
from boxblur.domain.types import AppConfig
from boxblur.features.planner.logic import plan, validate_mask, validate_tile_budget
from boxblur.kernel.image.logic import format_grid
from boxblur.kernel.image.validation import ensure_grid, ensure_group_shape, ensure_mask
from boxblur.kernel.system.config import APP_CONFIG
from boxblur.kernel.system.logging import get_logger

logger = get_logger(__name__)

# Grids up to this many samples are dumped at DEBUG level
DUMP_MAX_SAMPLES = 256


def _cpu_backend() -> IComputeBackend:
    from boxblur.services.rendering.cpu_engine import CPUEngine

    return CPUEngine()


def _gpu_backend() -> IComputeBackend:
    from boxblur.services.rendering.gpu_engine import GPUEngine

    return GPUEngine()


BACKENDS: Dict[str, Callable[[], IComputeBackend]] = {
    "cpu": _cpu_backend,
    "wgpu": _gpu_backend,
}


def create_backend(name: str) -> IComputeBackend:
    factory = BACKENDS.get(name.lower())
    if factory is None:
        raise ConfigError("unknown compute backend", "create_backend", {"backend": name, "known": sorted(BACKENDS)})
    return factory()


class LaunchOrchestrator:
    """
    Plans, binds and runs one box blur launch at a time. Synchronous and single-shot.
    """

    def __init__(self, backend: Optional[IComputeBackend] = None, config: AppConfig = APP_CONFIG) -> None:
        self.config = config
        self._backend = backend

    @property
    def backend(self) -> IComputeBackend:
        if self._backend is None:
            self._backend = create_backend(self.config.backend)
        return self._backend

    def run(
        self,
        grid: Union[Grid, Any],
        mask: Union[Mask, Any],
        group_shape: Optional[Union[GroupShape, Any]] = None,
        variant: Union[Variant, str] = Variant.TILED,
    ) -> OutputGrid:
        """
        Blurs `grid`. Mask and group shape may also be given as `[left, up, right, down]`
        and `[local_width, local_height]` sequences. Config problems raise ConfigError
        before anything is launched; any backend failure surfaces as ComputeError and
        yields no output.
        """
        grid = ensure_grid(grid)
        mask = ensure_mask(mask)
        try:
            variant = Variant(variant)
        except ValueError as e:
            raise ConfigError("unknown kernel variant", "run", {"variant": variant}) from e
        if group_shape is None:
            if variant == Variant.NAIVE:
                group_shape = GroupShape(*self.config.naive_group_shape)
            else:
                raise ConfigError("tiled launch needs a group shape", "run", {"variant": str(variant)})
        else:
            group_shape = ensure_group_shape(group_shape)

        validate_mask(grid.width, grid.height, mask)
        launch = plan(grid.width, grid.height, group_shape, self.config.max_threads_per_group)
        if variant == Variant.TILED:
            validate_tile_budget(mask, group_shape, self.config.max_tile_bytes)

        context = LaunchContext(grid=grid, mask=mask, launch=launch, variant=variant)
        backend = self.backend
        self._log_launch(context, backend.name)

        try:
            res = backend.launch(context)
        except BlurError as e:
            logger.error(f"Launch failed on {backend.name}: {e}")
            raise
        except Exception as e:
            logger.error(f"Launch failed on {backend.name}: {e}")
            raise ComputeError(str(e) or type(e).__name__, "launch", {"backend": backend.name, **context.params}) from e

        if res.shape != (grid.height, grid.width):
            raise ComputeError(
                "backend returned a buffer of the wrong shape",
                "launch",
                {"backend": backend.name, "shape": res.shape, **context.params},
            )

        logger.debug(f"Launch finished: {context.metrics}")
        out = OutputGrid(
            width=grid.width,
            height=grid.height,
            samples=res.astype(np.float64, copy=False).reshape(-1),
            source_dtype=grid.dtype,
        )
        if logger.isEnabledFor(logging.DEBUG) and grid.samples.size <= DUMP_MAX_SAMPLES:
            logger.debug("Original data:\n" + format_grid(grid.samples, grid.width, grid.height))
            logger.debug("Blurred data:\n" + format_grid(out.samples, out.width, out.height))
        return out

    def _log_launch(self, context: LaunchContext, backend_name: str) -> None:
        launch = context.launch
        msg = (
            f"Box blur [{context.variant}] on {backend_name}: image {context.grid.width}x{context.grid.height}, "
            f"mask L{context.mask.left} U{context.mask.up} R{context.mask.right} D{context.mask.down}, "
            f"{launch.groups_x}x{launch.groups_y} groups of {launch.local_width}x{launch.local_height}"
        )
        if context.variant == Variant.TILED:
            rows, cols = tile_shape(context.mask, launch.group_shape)
            msg += f", tile {cols}x{rows}"
        logger.info(msg)


def run_box_blur(
    grid: Union[Grid, Any],
    mask: Union[Mask, Any],
    group_shape: Optional[Union[GroupShape, Any]] = None,
    variant: Union[Variant, str] = Variant.TILED,
    backend: Optional[IComputeBackend] = None,
) -> OutputGrid:
    """
    One-call entry point. Uses the configured backend unless one is given.
    """
    return LaunchOrchestrator(backend=backend).run(grid, mask, group_shape, variant)
