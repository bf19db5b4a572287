"""Application services orchestrating domain and core capabilities."""

from .execution import run_group, summarize

__all__ = [
    "run_group",
    "summarize",
]
