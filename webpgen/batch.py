"""
Batch engine operations.

The state machine is idle -> running -> (paused | idle) and paused -> running.
Every operation takes the current BatchState and returns a new one; loading
and storing the state is left to the caller (see engine.BatchEngine).
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Tuple

from .batch_state import (
    IDLE, PAUSED, RUNNING, BatchState, ChunkResult, StartResult,
)

CHUNK_SIZE = 15
MAX_ERRORS = 5


@dataclass(frozen=True)
class Gate:
    """
    Capability gate consulted before any scan or transcode work.

    Attributes:
        ready: An encoder is available and the library is writable
        processing_enabled: User toggle for batch processing
    """
    ready: bool = True
    processing_enabled: bool = True

    @property
    def is_open(self) -> bool:
        return self.ready and self.processing_enabled


@dataclass
class BatchDeps:
    """
    Collaborators of the batch operations.

    Attributes:
        scanner: Provides list_asset_ids, count_assets and get_gaps
        processor: Provides process_asset
        gate: Capability gate, or a callable returning one
        clock: Returns the current unix time
        chunk_size: Assets visited per chunk
    """
    scanner: object
    processor: object
    gate: object = field(default_factory=Gate)
    clock: Callable[[], float] = time.time
    chunk_size: int = CHUNK_SIZE

    def current_gate(self) -> Gate:
        return self.gate() if callable(self.gate) else self.gate

    def now(self) -> int:
        return int(self.clock())


def _finalize(state: BatchState) -> BatchState:
    return state.evolve(status=IDLE, cursor=0)


def start(state: BatchState, deps: BatchDeps) -> Tuple[BatchState, StartResult]:
    """
    Start a new pass, or resume a paused one.

    Starting from idle snapshots the population size and resets the
    counters; resuming keeps cursor, processed and total.
    """
    if not deps.current_gate().is_open:
        return state, StartResult(False, "Not ready or processing is disabled.")

    if state.status == RUNNING:
        return state, StartResult(True, "Batch already running.")

    if state.status == IDLE:
        new_state = BatchState(
            status=RUNNING,
            cursor=0,
            total=deps.scanner.count_assets(),
            processed=0,
            last_run=deps.now(),
        )
        return new_state, StartResult(True, "Batch started.")

    return state.evolve(status=RUNNING), StartResult(True, "Batch resumed.")


def pause(state: BatchState) -> BatchState:
    """Pause a running pass; any other state is returned unchanged."""
    if state.status == RUNNING:
        return state.evolve(status=PAUSED)
    return state


def run_chunk(state: BatchState, deps: BatchDeps) -> Tuple[BatchState, ChunkResult]:
    """
    Visit the next page of assets and fill their gaps.

    Per-asset failures are collected as errors and never stop the cursor.
    The pass finishes when a page comes back empty or short, or the cursor
    reaches the snapshotted total.
    """
    if not deps.current_gate().is_open or state.status != RUNNING:
        return state, ChunkResult(done=True)

    ids = deps.scanner.list_asset_ids(limit=deps.chunk_size, offset=state.cursor)
    if not ids:
        return _finalize(state), ChunkResult(done=True)

    cursor = state.cursor
    processed_assets = state.processed
    produced = 0
    bytes_saved = 0
    optimized = 0
    errors = []

    for asset_id in ids:
        gaps = deps.scanner.get_gaps(asset_id)
        if gaps.needs_work:
            outcome = deps.processor.process_asset(asset_id)
            produced += outcome.derived_generated
            if outcome.regenerated:
                produced += 1
            bytes_saved += outcome.bytes_saved
            if not outcome.errors and (outcome.derived_generated or outcome.regenerated):
                optimized += 1
            if len(errors) < MAX_ERRORS:
                errors.extend(outcome.errors[:MAX_ERRORS - len(errors)])
        cursor += 1
        processed_assets += 1

    new_state = state.evolve(cursor=cursor, processed=processed_assets, last_run=deps.now())
    if new_state.cursor >= new_state.total or len(ids) < deps.chunk_size:
        new_state = _finalize(new_state)

    return new_state, ChunkResult(
        processed=produced,
        done=new_state.status == IDLE,
        errors=errors,
        bytes_saved=bytes_saved,
        assets_visited=len(ids),
        assets_optimized=optimized,
    )
