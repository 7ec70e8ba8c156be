"""
Exception hierarchy for embedding-flame.

All errors raised by the package derive from FlameError. The concrete
classes also derive from the matching builtin so callers that already
catch ValueError or KeyError keep working.
"""


class FlameError(Exception):
    """Base class for all embedding-flame errors."""


class InvalidInputError(FlameError, ValueError):
    """Raised when a vector, point cloud or configuration value is unusable."""


class NotFoundError(FlameError, KeyError):
    """Raised when a point-cloud identifier cannot be resolved."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Point cloud not found: {identifier}")

    def __str__(self) -> str:
        return self.args[0]
