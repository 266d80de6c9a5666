"""Kernel services - session-holding, flush-only."""

from practice_kernel.services.base import BaseService

__all__ = ["BaseService"]
