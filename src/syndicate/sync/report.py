"""
Reports returned by bulk operations.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class OutcomeStatus(str, Enum):
    SYNCED = "synced"
    DETACHED = "detached"
    SKIPPED = "skipped"
    FAILED = "failed"


# Skip reasons shown to operators
REASON_NODE_MISSING = "node missing"
REASON_SOURCE_NODE = "source node"
REASON_DETACHED = "detached"
REASON_NOT_SYNCABLE = "not syncable"
REASON_NOT_FOUND = "not found"
REASON_NOT_SYNCED = "not synced"
REASON_REJECTED = "write rejected"


@dataclass
class SyncOutcome:
    """
    Result for one (object, node) pair of a bulk run.

    Attributes:
        object_type: Type of the object
        object_id: Id on the node the run started from
        node_id: Node the operation targeted
        status: synced, detached, skipped or failed
        destination_id: Replica id, when one is known
        reason: Why the pair was skipped or failed
    """
    object_type: str
    object_id: int
    node_id: int
    status: OutcomeStatus
    destination_id: Optional[int] = None
    reason: Optional[str] = None

    @property
    def message(self) -> str:
        if self.status == OutcomeStatus.SYNCED:
            return (
                f"Synced {self.object_type} ({self.object_id}) to site {self.node_id}, "
                f"Destination id: {self.destination_id}"
            )
        if self.status == OutcomeStatus.DETACHED:
            return f"Detached {self.object_type} ({self.object_id}) on site {self.node_id}"
        verb = "Skipped" if self.status == OutcomeStatus.SKIPPED else "Failed"
        return f"{verb} {self.object_type} ({self.object_id}) for site {self.node_id}: {self.reason}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "object_type": self.object_type,
            "object_id": self.object_id,
            "node_id": self.node_id,
            "status": self.status.value,
            "destination_id": self.destination_id,
            "reason": self.reason,
        }


@dataclass
class SyncReport:
    """Ordered outcomes of a bulk run."""
    operation: str
    outcomes: List[SyncOutcome] = field(default_factory=list)
    objects_processed: int = 0

    def add(self, outcome: SyncOutcome) -> SyncOutcome:
        self.outcomes.append(outcome)
        return outcome

    def by_status(self, status: OutcomeStatus) -> List[SyncOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def synced(self) -> List[SyncOutcome]:
        return self.by_status(OutcomeStatus.SYNCED)

    @property
    def skipped(self) -> List[SyncOutcome]:
        return self.by_status(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> List[SyncOutcome]:
        return self.by_status(OutcomeStatus.FAILED)

    @property
    def detached(self) -> List[SyncOutcome]:
        return self.by_status(OutcomeStatus.DETACHED)

    def summary(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in OutcomeStatus}
        for outcome in self.outcomes:
            counts[outcome.status.value] += 1
        counts["objects"] = self.objects_processed
        return counts

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "operation": self.operation,
            "summary": self.summary(),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
