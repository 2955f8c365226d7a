"""Background workers for the payments service."""

from .manager import WorkerManager
from .side_effect_worker import SideEffectWorker

__all__ = ["SideEffectWorker", "WorkerManager"]
