"""Exceptions raised by the editing engine."""

from enum import Enum
from typing import List


class ImpactTreeError(Exception):
    """Base class for impact tree errors."""


class ValidationReason(str, Enum):
    DANGLING_ENDPOINT = "dangling_endpoint"
    SELF_LOOP = "self_loop"
    DUPLICATE_EDGE = "duplicate_edge"


class RelationshipValidationError(ImpactTreeError, ValueError):
    """
    A relationship could not be created.

    The store is left unchanged; callers report the message to the user.
    """

    def __init__(self, reason: ValidationReason, message: str):
        super().__init__(message)
        self.reason = reason


class NodeNotFoundError(ImpactTreeError, KeyError):
    """Raised when updating a node id that is not in the store."""

    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Node not found: {self.node_id}"


class SnapshotError(ImpactTreeError, ValueError):
    """An imported snapshot was rejected. Nothing was loaded."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors) if errors else "Invalid snapshot")
        self.errors = list(errors)
