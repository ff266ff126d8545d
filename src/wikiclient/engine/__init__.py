"""
Protocol engine: batching, request execution, continuation, throttling,
uploads and error classification.
"""

from .batcher import chunk_ids, chunk_titles, namespace_string
from .classifier import Classification, check, classify
from .executor import RequestExecutor
from .query import QueryEngine, continuation
from .throttle import WriteThrottle
from .upload import ChunkedUploader

__all__ = [
    "chunk_ids",
    "chunk_titles",
    "namespace_string",
    "Classification",
    "check",
    "classify",
    "RequestExecutor",
    "QueryEngine",
    "continuation",
    "WriteThrottle",
    "ChunkedUploader",
]
