"""procure – materials procurement optimization engine."""

from loguru import logger

__all__ = ["logger"]
