"""
AssetScanner - Enumerates library assets and computes their work gaps.
"""

import logging
import os
from typing import List, Optional, Tuple

from .derived_policy import derived_path, worth_serving
from .exceptions import LibraryError
from .gap_report import GapReport
from .size_registry import SizeRegistry

FULL = 'full'


class AssetScanner:
    """
    Read-only view over an asset store that reports what each asset still needs.

    Works with any store exposing ``list_ids``, ``count``, ``get``,
    ``source_path`` and ``variant_path`` (see LocalAssetStore).
    """

    def __init__(
        self,
        store,
        registry: SizeRegistry,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize scanner.

        Args:
            store: Asset metadata store
            registry: Registered resolution sizes
            logger: Optional logger instance
        """
        self.store = store
        self.registry = registry
        self.logger = logger or logging.getLogger(__name__)

    def list_asset_ids(self, limit: int = 0, offset: int = 0) -> List[int]:
        """Ids in ascending order, paginated by ``limit``/``offset`` (0 = no limit)."""
        return self.store.list_ids(limit=limit, offset=offset)

    def count_assets(self) -> int:
        return self.store.count()

    def get_gaps(self, asset_id: int) -> GapReport:
        """
        Compute the missing variants and WebP files of one asset.

        Never raises for missing or corrupt metadata; an asset that cannot be
        read yields an empty report.
        """
        try:
            asset = self.store.get(asset_id)
        except LibraryError as e:
            self.logger.warning(f"Cannot read metadata for asset {asset_id}: {e}")
            return GapReport()
        if asset is None:
            return GapReport()

        report = GapReport()
        registered = self.registry.names()

        full_path = self.store.source_path(asset)
        if os.path.exists(full_path):
            if not worth_serving(full_path, derived_path(full_path)):
                report.missing_derived[FULL] = full_path

        if not asset.has_metadata:
            report.missing_resolutions = list(registered)
            return report

        for name in registered:
            variant = self.store.variant_path(asset, name)
            if variant is None or not os.path.exists(variant):
                report.missing_resolutions.append(name)
                continue
            if not worth_serving(variant, derived_path(variant)):
                report.missing_derived[name] = variant

        return report

    def get_counts_needing_work(self) -> Tuple[int, int]:
        """
        Total assets and how many still need work.

        Walks the whole population; meant for coarse status display only.
        """
        total = self.count_assets()
        needing = 0
        for asset_id in self.list_asset_ids():
            if self.get_gaps(asset_id).needs_work:
                needing += 1
        self.logger.debug(f"{needing} of {total} assets need work")
        return total, needing
