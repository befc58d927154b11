"""
Batch state records - persisted cursor/progress, chunk results, cumulative stats.
"""

from dataclasses import dataclass, field, asdict, replace
from typing import List

IDLE = 'idle'
RUNNING = 'running'
PAUSED = 'paused'

STATUSES = (IDLE, RUNNING, PAUSED)

BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class BatchState:
    """
    Progress of the batch pass, persisted between chunks.

    Attributes:
        status: 'idle', 'running' or 'paused'
        cursor: Offset of the next asset in the ordered population
        total: Population size snapshotted when the pass started
        processed: Assets visited so far, including ones with nothing to do
        last_run: Unix timestamp of the last chunk or start
    """
    status: str = IDLE
    cursor: int = 0
    total: int = 0
    processed: int = 0
    last_run: int = 0

    @property
    def is_running(self) -> bool:
        return self.status == RUNNING

    @property
    def percent_complete(self) -> float:
        if self.total <= 0:
            return 100.0 if self.status == IDLE else 0.0
        return min(100.0, self.processed / self.total * 100)

    def evolve(self, **changes) -> 'BatchState':
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'BatchState':
        """Create from dictionary, filling defaults for missing keys."""
        status = data.get('status', IDLE)
        if status not in STATUSES:
            status = IDLE
        return cls(
            status=status,
            cursor=int(data.get('cursor', data.get('offset', 0)) or 0),
            total=int(data.get('total', 0) or 0),
            processed=int(data.get('processed', 0) or 0),
            last_run=int(data.get('last_run', 0) or 0),
        )


@dataclass
class ChunkResult:
    """
    Result of one run_chunk invocation.

    Attributes:
        processed: Files produced in this chunk (WebP files plus regenerations)
        done: The pass is finished or no work was attempted
        errors: First few error messages of the chunk
        bytes_saved: Bytes saved by this chunk
        assets_visited: Assets the cursor moved over
        assets_optimized: Assets whose work completed without errors
    """
    processed: int = 0
    done: bool = True
    errors: List[str] = field(default_factory=list)
    bytes_saved: int = 0
    assets_visited: int = 0
    assets_optimized: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StartResult:
    success: bool
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AggregateStats:
    """
    Cumulative totals across all passes. Never decremented.

    Attributes:
        mb_saved: Megabytes saved by WebP files, rounded to 2 decimals
        images_optimized: Images that had all their work done
    """
    mb_saved: float = 0.0
    images_optimized: int = 0

    def accumulate(self, bytes_saved: int = 0, images: int = 0) -> 'AggregateStats':
        """Stats with the chunk totals added. Non-positive amounts change nothing."""
        mb_saved = self.mb_saved
        if bytes_saved > 0:
            mb_saved = max(round(mb_saved + bytes_saved / BYTES_PER_MB, 2), mb_saved)
        return AggregateStats(mb_saved, self.images_optimized + max(images, 0))

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'AggregateStats':
        return cls(
            mb_saved=float(data.get('mb_saved', 0) or 0),
            images_optimized=int(data.get('images_optimized', 0) or 0),
        )
