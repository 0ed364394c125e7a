"""Concurrent stages connected by the crawler's queues."""

from .build import BuildStage
from .fetch import FetchStage

__all__ = ["BuildStage", "FetchStage"]
