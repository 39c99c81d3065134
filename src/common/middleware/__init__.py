"""Common middleware for Stagepass."""

from .observability import StructlogContextMiddleware

__all__ = ["StructlogContextMiddleware"]
