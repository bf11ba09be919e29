"""Bridge orchestration: batch resolution and the inbound adapter."""

from .adapter import EcsBridgeAdapter
from .batches import BatchResolver, chunk

__all__ = ["EcsBridgeAdapter", "BatchResolver", "chunk"]
