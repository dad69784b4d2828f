"""Exception taxonomy for the location analysis engine.

Backend and parsing errors never escape their component: they are raised
internally, caught where they originate and logged.  Only
:class:`InvalidGraphPayload` (and :class:`CacheKeyParseError` in strict mode)
reach the caller.
"""

from __future__ import annotations


class LocgraphError(Exception):
    """Base class for all locgraph errors."""


class BackendQueryTimeout(LocgraphError):
    def __init__(self, operation: str, timeout_ms: float) -> None:
        super().__init__(f"{operation} timed out after {timeout_ms:g}ms")
        self.operation = operation
        self.timeout_ms = timeout_ms


class BackendQueryFailure(LocgraphError):
    def __init__(self, operation: str, cause: BaseException) -> None:
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


class MalformedTypeString(LocgraphError):
    def __init__(self, type_string: str, reason: str) -> None:
        super().__init__(f"malformed type string {type_string!r}: {reason}")
        self.type_string = type_string
        self.reason = reason


class InvalidGraphPayload(LocgraphError):
    """Raised when a graph payload handed to the classifier cannot be decoded."""


class CacheKeyParseError(LocgraphError):
    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"invalid cache key {key!r}: {reason}")
        self.key = key
        self.reason = reason
