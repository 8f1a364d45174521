"""
Error taxonomy for the generation coordinator.
All errors inherit from FishForgeError so callers can catch the whole family.
None of these are fatal to the process; each call site decides whether to log,
skip, or drop.
"""
from typing import Any, Dict, Optional


class FishForgeError(Exception):
    """Base exception for all fish-forge errors."""

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details: Dict[str, Any] = details or {}


class SourceQueryError(FishForgeError):
    """
    The source provider could not return recent items.
    The grouping pass is skipped and retried on the next trigger.
    """


class GenerationError(FishForgeError):
    """
    The generator failed, timed out, or returned an unusable result.
    The dequeued request is dropped without retry.
    """

    def __init__(
        self,
        message: str = "Generation failed",
        reason: str = "",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.reason = reason


class PersistenceError(FishForgeError):
    """A save or load against the persistence engine failed."""


class MalformedPersistedStateError(PersistenceError):
    """A persisted queue or dedup record could not be decoded."""

    def __init__(
        self,
        message: str = "Malformed persisted record",
        record: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.record = record


class CollectionError(FishForgeError):
    """A signal collector could not produce a value."""

    def __init__(
        self,
        message: str = "Collection failed",
        kind: str = "",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.kind = kind
