"""Execution strategy implementations."""

from regmetrics.execution.base import ExecutionStrategy, RunContext
from regmetrics.execution.dask import DaskTaskStrategy
from regmetrics.execution.threads import ThreadPoolStrategy

__all__ = [
    "DaskTaskStrategy",
    "ExecutionStrategy",
    "RunContext",
    "ThreadPoolStrategy",
]
