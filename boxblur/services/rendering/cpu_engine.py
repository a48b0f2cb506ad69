import time

import numba  # type: ignore

from boxblur.domain.interfaces import LaunchContext
from boxblur.domain.models import Variant
from boxblur.domain.types import OutputBuffer
from boxblur.features.stencil.logic import naive_box_blur, tiled_box_blur
from boxblur.kernel.system.logging import get_logger

logger = get_logger(__name__)


class CPUEngine:
    """
    Runs the stencil kernels on the host, one numba task per work-group.
    """

    name = "cpu"

    @property
    def is_available(self) -> bool:
        return True

    def launch(self, context: LaunchContext) -> OutputBuffer:
        kernel = tiled_box_blur if context.variant == Variant.TILED else naive_box_blur
        start = time.perf_counter()
        res = kernel(context.grid, context.mask, context.launch)
        context.metrics["device"] = f"cpu ({numba.get_num_threads()} threads)"
        context.metrics["elapsed_s"] = time.perf_counter() - start
        logger.debug(f"CPU {context.variant} kernel finished in {context.metrics['elapsed_s']:.4f}s")
        return res
