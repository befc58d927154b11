"""
BatchEngine - Wires the batch operations to persistence and scheduling.
"""

import logging
import os
import threading
from typing import Callable, List, Optional

from . import batch
from .asset_store import LocalAssetStore
from .batch import BatchDeps, Gate
from .batch_state import BatchState, ChunkResult, StartResult
from .config import EngineConfig
from .encoders import DerivedEncoder
from .generator import AssetProcessor
from .scanner import AssetScanner
from .scheduler import ContinuationScheduler
from .size_registry import SizeRegistry
from .state_store import JsonStateStore
from .variant_generator import VariantGenerator


class BatchEngine:
    """
    Public start / pause / run-chunk / status operations for trigger adapters.

    Each operation loads the persisted state, applies the batch operation and
    stores the result. A process-local lock keeps chunk runs single-flight
    within this process; separate processes sharing one state file must be
    serialized by the host.
    """

    def __init__(
        self,
        deps: BatchDeps,
        store: JsonStateStore,
        continuation_delay: float = 5.0,
        scheduler_factory: Optional[Callable[[Callable], ContinuationScheduler]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize engine.

        Args:
            deps: Scanner, processor, gate and clock for the batch operations
            store: Persistence for the batch state and stats
            continuation_delay: Seconds between a chunk and its continuation
            scheduler_factory: Builds the continuation scheduler around a callback
            logger: Optional logger instance
        """
        self.deps = deps
        self.store = store
        self.continuation_delay = continuation_delay
        self.logger = logger or logging.getLogger(__name__)
        factory = scheduler_factory or (lambda cb: ContinuationScheduler(cb, logger=self.logger))
        self.scheduler = factory(self._continue)
        self._lock = threading.Lock()

    def get_state(self) -> BatchState:
        return self.store.load_state()

    def start(self) -> StartResult:
        with self._lock:
            state = self.store.load_state()
            new_state, result = batch.start(state, self.deps)
            if new_state != state:
                self.store.save_state(new_state)
            if result.success:
                self.logger.info(
                    f"{result.message} ({new_state.processed}/{new_state.total} visited)"
                )
                self.scheduler.schedule(self.continuation_delay)
            else:
                self.logger.warning(f"Batch not started: {result.message}")
            return result

    def pause(self) -> BatchState:
        with self._lock:
            state = self.store.load_state()
            new_state = batch.pause(state)
            if new_state != state:
                self.store.save_state(new_state)
                self.logger.info(
                    f"Batch paused at {new_state.cursor}/{new_state.total}"
                )
            self.scheduler.cancel()
            return new_state

    def run_chunk(self) -> ChunkResult:
        with self._lock:
            state = self.store.load_state()
            new_state, result = batch.run_chunk(state, self.deps)
            if new_state != state:
                self.store.save_state(new_state)

            if result.bytes_saved > 0 or result.assets_optimized > 0:
                self.store.add_stats(
                    bytes_saved=result.bytes_saved,
                    images=result.assets_optimized,
                )

            if new_state.is_running and self.deps.current_gate().is_open:
                self.scheduler.schedule(self.continuation_delay)
            else:
                self.scheduler.cancel()

            if result.assets_visited:
                self.logger.info(
                    f"Chunk: {result.assets_visited} assets visited, {result.processed} files "
                    f"generated, {result.bytes_saved} bytes saved, {len(result.errors)} errors "
                    f"[{new_state.processed}/{state.total}]"
                )
            for error in result.errors:
                self.logger.warning(f"  {error}")
            if result.done and state.is_running:
                self.logger.info("Batch pass complete")
            return result

    def status(self) -> dict:
        """
        Current state, coarse needing-work counts and cumulative stats.

        Counting needing work walks every asset; poll this sparingly.
        """
        state = self.store.load_state()
        total, needing = self.deps.scanner.get_counts_needing_work()
        stats = self.store.load_stats()
        return {
            'state': state.to_dict(),
            'needing_work': needing,
            'total_assets': total,
            'fully_optimized': max(0, total - needing),
            'stats': stats.to_dict(),
            'gate': self._gate_dict(),
        }

    def run_chunk_now(self) -> dict:
        """Run one chunk immediately and return its result with the status."""
        result = self.run_chunk()
        payload = self.status()
        payload['chunk_result'] = result.to_dict()
        return payload

    def resume(self) -> bool:
        """Schedule a continuation if the persisted state is running and the gate is open."""
        if not self.deps.current_gate().is_open or not self.get_state().is_running:
            return False
        return self.scheduler.schedule(self.continuation_delay)

    def invalidate_sizes(self) -> List[str]:
        """Drop the registered sizes, reload them from their source and return the new names."""
        registry = self.deps.scanner.registry
        registry.invalidate()
        names = registry.names()
        self.logger.info(f"Registered sizes: {', '.join(names) or 'none'}")
        return names

    def shutdown(self) -> None:
        self.scheduler.cancel()

    def _gate_dict(self) -> dict:
        gate: Gate = self.deps.current_gate()
        return {'ready': gate.ready, 'processing_enabled': gate.processing_enabled}

    def _continue(self) -> None:
        self.run_chunk()


def build_engine(
    config: EngineConfig,
    logger: Optional[logging.Logger] = None,
    scheduler_factory: Optional[Callable[[Callable], ContinuationScheduler]] = None
) -> BatchEngine:
    """
    Assemble the engine over a local library from an EngineConfig.

    The gate is evaluated once here: ready means a WebP encoder is available
    and the library root is writable.
    """
    logger = logger or logging.getLogger(__name__)
    registry = SizeRegistry(config.load_sizes, logger=logger)
    asset_store = LocalAssetStore(
        config.library_root,
        registry,
        variant_generator=VariantGenerator(quality=config.quality, logger=logger),
        logger=logger,
    )
    scanner = AssetScanner(asset_store, registry, logger=logger)
    encoder = DerivedEncoder.default(
        quality=config.quality, timeout=config.encode_timeout, logger=logger
    )
    processor = AssetProcessor(asset_store, scanner, encoder, logger=logger)

    ready = encoder.has_backend() and os.access(config.library_root, os.W_OK)
    gate = Gate(ready=ready, processing_enabled=config.processing_enabled)
    deps = BatchDeps(
        scanner=scanner,
        processor=processor,
        gate=gate,
        chunk_size=config.chunk_size,
    )
    return BatchEngine(
        deps,
        JsonStateStore(config.state_path, logger=logger),
        continuation_delay=config.continuation_delay,
        scheduler_factory=scheduler_factory,
        logger=logger,
    )
