"""Common middleware for Stampbook."""

from .observability import StructlogContextMiddleware

__all__ = ["StructlogContextMiddleware"]
