"""Transport-side collaborators of the request pipeline.

Public exports:
    CancellationToken: One-shot, thread-safe cancellation signal
    CancellationRegistration: Disposable callback registration on a token
    with_blocking_cancellation: Race an operation against a token
    RequestCounters: Dispatch and in-flight counters
    get_request_counters: Process-wide RequestCounters
    JsonSettings: JSON serialization options
    serialize / deserialize: JSON codec
    extension_to_mime_type: MIME lookup by filename extension
"""

from httpbuilder.transport.cancellation import (
    CancellationRegistration,
    CancellationToken,
    with_blocking_cancellation,
)
from httpbuilder.transport.codec import JsonSettings, deserialize, serialize
from httpbuilder.transport.counters import RequestCounters, get_request_counters
from httpbuilder.transport.mime import extension_to_mime_type, filename_to_mime_type

__all__ = [
    "CancellationRegistration",
    "CancellationToken",
    "JsonSettings",
    "RequestCounters",
    "deserialize",
    "extension_to_mime_type",
    "filename_to_mime_type",
    "get_request_counters",
    "serialize",
    "with_blocking_cancellation",
]
