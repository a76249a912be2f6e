"""
Exception hierarchy for Syndicate.

NotFound-style errors are raised by the store adapters and converted into
False/no-op results at the engine boundary. WriteRejectedError is the only
error that carries data back to the engine (the id of a conflicting term).
"""

from typing import Optional


class SyndicateError(Exception):
    """Base exception for syndication errors"""
    pass


class NodeNotFoundError(SyndicateError):
    """Raised when a node id is not registered in the node directory"""

    def __init__(self, node_id: int):
        self.node_id = node_id
        super().__init__(f"Node {node_id} does not exist")


class ObjectNotFoundError(SyndicateError):
    """Raised when a content object cannot be found on the active node"""

    def __init__(self, object_type: str, object_id: int, node_id: Optional[int] = None):
        self.object_type = object_type
        self.object_id = object_id
        self.node_id = node_id
        where = f" on node {node_id}" if node_id is not None else ""
        super().__init__(f"{object_type} {object_id} does not exist{where}")


class LockTimeoutError(SyndicateError):
    """Raised when a queue lock could not be acquired within the allowed attempts"""
    pass


class WriteRejectedError(SyndicateError):
    """
    Raised when the object store refuses an insert or update.

    Attributes:
        existing_id: Id of the object that caused a uniqueness conflict, if any
    """

    def __init__(self, message: str, existing_id: Optional[int] = None):
        self.existing_id = existing_id
        super().__init__(message)


class InvalidInputError(SyndicateError):
    """Raised for malformed ids or arguments supplied by external callers"""
    pass


def parse_object_id(value) -> int:
    """
    Validate and cast an externally supplied object or node id.

    Args:
        value: Raw id (int or numeric string)

    Returns:
        Positive integer id

    Raises:
        InvalidInputError: If the value is not a positive integer
    """
    if isinstance(value, bool):
        raise InvalidInputError(f"Invalid id: {value!r}")
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidInputError(f"Invalid id: {value!r}")
    if parsed <= 0:
        raise InvalidInputError(f"Invalid id: {value!r}")
    return parsed


__all__ = [
    "SyndicateError",
    "NodeNotFoundError",
    "ObjectNotFoundError",
    "LockTimeoutError",
    "WriteRejectedError",
    "InvalidInputError",
    "parse_object_id",
]
