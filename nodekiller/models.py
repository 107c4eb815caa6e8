from dataclasses import dataclass
from typing import Callable, Optional, Tuple

STEP_GRACEFUL = "graceful"
STEP_FORCEFUL = "forceful"


@dataclass(frozen=True)
class DiscoveredProcess:
    """One lsof record: a pid, its owner if known, and its listening ports."""
    process_id: int
    owning_user: Optional[str]
    ports: Tuple[int, ...]


@dataclass(frozen=True)
class ListeningProcess:
    """A discovered and classified process, as shown to the user."""
    process_id: int
    owning_user: Optional[str]
    ports: Tuple[int, ...]
    category_tag: str


@dataclass(frozen=True)
class CategoryRule:
    tag: str
    scan_target: str
    # command line -> tag, or None when the rule does not apply
    classify: Callable[[str], Optional[str]]


@dataclass(frozen=True)
class KillOutcome:
    process_id: int
    succeeded: bool
    termination_step: str
    error_detail: Optional[str] = None


@dataclass(frozen=True)
class BulkKillOutcome:
    succeeded: int
    failed: int
    failure_details: Tuple[str, ...] = ()


@dataclass
class ScheduleState:
    timer: Optional[object] = None
    in_flight: bool = False
    queued_rerun: bool = False
    quitting: bool = False
    # bumped whenever the pending timer is replaced or cancelled
    generation: int = 0
