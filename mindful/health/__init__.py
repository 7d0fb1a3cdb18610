"""Health check module."""

from mindful.health.router import router


__all__ = ["router"]
