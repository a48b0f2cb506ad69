import re
from typing import Any, Dict, Mapping

from boxblur.domain.errors import BuildError
from boxblur.infrastructure.gpu.device import GPUDevice
from boxblur.kernel.system.logging import get_logger

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Z_][A-Z0-9_]*)\s*\}\}")


class ShaderLoader:
    """
    Reads WGSL sources, fills `{{NAME}}` compile-time constants and builds modules.
    """

    _source_cache: Dict[str, str] = {}

    @classmethod
    def read(cls, path: str) -> str:
        if path not in cls._source_cache:
            try:
                with open(path, "r", encoding="utf-8") as f:
                    source = f.read()
            except OSError as e:
                raise BuildError("cannot read kernel source", "read_source", {"path": path}, log=str(e)) from e
            if not source.strip():
                raise BuildError("kernel source is empty", "read_source", {"path": path})
            cls._source_cache[path] = source
        return cls._source_cache[path]

    @staticmethod
    def render(source: str, constants: Mapping[str, Any]) -> str:
        """
        Substitutes placeholders. Unknown placeholders are a build error.
        """

        def _sub(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name not in constants:
                raise BuildError("unbound shader constant", "render", {"name": name})
            return str(constants[name])

        return _PLACEHOLDER.sub(_sub, source)

    @classmethod
    def load(cls, path: str, constants: Mapping[str, Any]) -> Any:
        device = GPUDevice.get().device
        if device is None:
            raise BuildError("no device to compile for", "create_shader_module", {"path": path})
        code = cls.render(cls.read(path), constants)
        try:
            return device.create_shader_module(code=code, label=path)
        except Exception as e:
            logger.error(f"Shader build failed for {path}: {e}")
            raise BuildError(
                "shader compilation failed",
                "create_shader_module",
                {"path": path, **dict(constants)},
                log=str(e),
            ) from e
