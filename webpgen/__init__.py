"""
Incremental derived image generation for an image library.

Finds assets that are missing resolution variants or a WebP counterpart and
fills the gaps in small, resumable chunks:
    1. Scan: compute the gap report of each asset
    2. Process: regenerate missing sizes, then encode missing WebP files
    3. Batch: walk the whole library a chunk at a time, persisting progress
"""

__version__ = "1.0.0"
__author__ = "California Academy of Sciences"

from .config import EngineConfig
from .asset import Asset, VariantInfo
from .size_registry import ResolutionSize, SizeRegistry
from .gap_report import GapReport
from .asset_store import LocalAssetStore
from .scanner import AssetScanner
from .encoders import DerivedEncoder
from .generator import AssetProcessor, ProcessResult
from .batch_state import BatchState, ChunkResult, AggregateStats
from .state_store import JsonStateStore
from .scheduler import ContinuationScheduler
from .engine import BatchEngine, build_engine
from .reporter import Reporter

__all__ = [
    "EngineConfig",
    "Asset",
    "VariantInfo",
    "ResolutionSize",
    "SizeRegistry",
    "GapReport",
    "LocalAssetStore",
    "AssetScanner",
    "DerivedEncoder",
    "AssetProcessor",
    "ProcessResult",
    "BatchState",
    "ChunkResult",
    "AggregateStats",
    "JsonStateStore",
    "ContinuationScheduler",
    "BatchEngine",
    "build_engine",
    "Reporter",
]
