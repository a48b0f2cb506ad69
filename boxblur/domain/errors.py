from typing import Any, Dict, Optional


class BlurError(Exception):
    """
    Base for all box blur failures. Carries the failing operation and its parameters.
    """

    def __init__(self, message: str, operation: str = "", params: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.params: Dict[str, Any] = dict(params or {})

    def __str__(self) -> str:
        if not self.operation:
            return self.message
        if not self.params:
            return f"{self.operation}: {self.message}"
        details = ", ".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.operation}: {self.message} ({details})"


class ConfigError(BlurError):
    """
    Invalid mask, group shape or resource budget. Always raised before launch.
    """


class ComputeError(BlurError):
    """
    Backend or launch failure.
    """


class BuildError(BlurError):
    """
    Kernel source failed to compile. `log` holds the compiler output.
    """

    def __init__(
        self,
        message: str,
        operation: str = "build",
        params: Optional[Dict[str, Any]] = None,
        log: str = "",
    ):
        super().__init__(message, operation, params)
        self.log = log
