"""
Stage specification: one time-boxed batch of identical workers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional

from paybench.errors import ConfigurationError


class OperationKind(str, Enum):
    """Operation a stage issues against the target service."""

    READ = "read"
    WRITE = "write"

    @classmethod
    def parse(cls, value) -> "OperationKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(kind.value for kind in cls)
            raise ConfigurationError(
                f"Unknown operation {value!r} (expected one of: {choices})"
            ) from None


@dataclass(frozen=True)
class StageSpec:
    """Immutable description of a stage.

    Attributes:
        name: Unique stage name; counters are keyed by it
        operation: Operation every worker of the stage invokes
        workers: Number of concurrent workers
        iterations: Invocations per worker
        max_duration: Seconds after the stage's own start before it is cut off
        start_offset: Seconds after run start at which the stage launches
        timeout: Per-call timeout override (None = run default)
        accepted_status_codes: Status whitelist override (None = run default)
    """

    name: str
    operation: OperationKind
    workers: int
    iterations: int
    max_duration: float
    start_offset: float = 0.0
    timeout: Optional[float] = None
    accepted_status_codes: Optional[FrozenSet[int]] = None

    def __post_init__(self):
        if not self.name or not str(self.name).strip():
            raise ConfigurationError("Stage name must not be empty")
        # Normalise loosely typed input (scenario files, CLI strings)
        object.__setattr__(self, "operation", OperationKind.parse(self.operation))
        if self.accepted_status_codes is not None:
            object.__setattr__(
                self, "accepted_status_codes", frozenset(self.accepted_status_codes)
            )

        if not isinstance(self.workers, int) or self.workers <= 0:
            raise ConfigurationError(
                f"Stage {self.name}: workers must be a positive integer, got {self.workers!r}"
            )
        if not isinstance(self.iterations, int) or self.iterations <= 0:
            raise ConfigurationError(
                f"Stage {self.name}: iterations must be a positive integer, got {self.iterations!r}"
            )
        if self.max_duration <= 0:
            raise ConfigurationError(
                f"Stage {self.name}: max_duration must be positive, got {self.max_duration!r}"
            )
        if self.start_offset < 0:
            raise ConfigurationError(
                f"Stage {self.name}: start_offset must not be negative, got {self.start_offset!r}"
            )
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(
                f"Stage {self.name}: timeout must be positive, got {self.timeout!r}"
            )
        if self.accepted_status_codes is not None and not self.accepted_status_codes:
            raise ConfigurationError(
                f"Stage {self.name}: accepted status codes must not be empty"
            )

    @property
    def target_requests(self) -> int:
        """Request volume the stage aims for."""
        return self.workers * self.iterations

    @property
    def window_end(self) -> float:
        """Latest offset (relative to run start) at which the stage can still run."""
        return self.start_offset + self.max_duration

    def overlaps(self, other: "StageSpec") -> bool:
        """Whether the two stages' scheduled windows intersect."""
        return self.start_offset < other.window_end and other.start_offset < self.window_end
