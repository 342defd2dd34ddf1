"""happy_tree.errors

Exception hierarchy. Everything the pipeline raises on purpose derives from
HappyTreeError so the CLI can report it and exit non-zero.
"""

from __future__ import annotations

from typing import Optional


class HappyTreeError(RuntimeError):
    pass


class ConfigError(HappyTreeError):
    """Bad parameters detected before any output is produced."""


class TransformRangeError(ConfigError):
    def __init__(self, node_id: int, value: int, domain_size: int) -> None:
        self.node_id = int(node_id)
        self.value = int(value)
        self.domain_size = int(domain_size)
        super().__init__(
            f"transform({self.node_id:#x}) = {self.value:#x} is outside the domain [0, {self.domain_size:#x})"
        )


class SnapshotError(HappyTreeError):
    def __init__(self, path: str, operation: str, reason: str) -> None:
        self.path = str(path)
        self.operation = operation
        super().__init__(f"{operation} failed for '{self.path}': {reason}")


class AnalysisError(HappyTreeError):
    pass


class RenderError(HappyTreeError):
    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        self.path = path
        super().__init__(message)
