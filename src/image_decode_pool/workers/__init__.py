"""
Background decode workers and the request/response protocol they speak.
"""

from .protocol import WorkerTask, Envelope, parse_response
from .transport import WorkerTransport, ThreadWorkerTransport
from .managed_worker import ManagedWorker
from .worker_pool import WorkerPool
from .worker_script import handle_request

__all__ = [
    "WorkerTask",
    "Envelope",
    "parse_response",
    "WorkerTransport",
    "ThreadWorkerTransport",
    "ManagedWorker",
    "WorkerPool",
    "handle_request",
]
