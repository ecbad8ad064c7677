"""
Basic data structures for load test outcomes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Classification(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """Result of one invocation attempt.

    Attributes:
        stage_name: Stage the invocation belongs to
        worker_id: Worker that issued it
        iteration: Zero-based iteration index within the worker
        sent_at: Wall-clock timestamp when the call was issued
        elapsed: Seconds from issue to response (or failure)
        classification: completed or failed
        status: HTTP status code, None when no response arrived
        error: Short failure description, None for completed calls
    """

    stage_name: str
    worker_id: int
    iteration: int
    sent_at: float
    elapsed: float
    classification: Classification
    status: Optional[int] = None
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.classification is Classification.COMPLETED
