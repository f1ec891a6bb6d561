"""
API Layer.

This package handles all communication with the Monochrome API instances:
the instance registry, the resilient request executor and the catalog client.
"""

from .client import MonochromeAPIClient, create_client
from .executor import ExecutionResult, Operation, RequestExecutor, RetryPolicy
from .instances import Instance, InstanceRegistry, RequestClass

__all__ = [
    "ExecutionResult",
    "Instance",
    "InstanceRegistry",
    "MonochromeAPIClient",
    "Operation",
    "RequestClass",
    "RequestExecutor",
    "RetryPolicy",
    "create_client",
]
