"""
AssetProcessor - Fills the gaps of a single asset.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from .derived_policy import derived_path, file_size, worth_serving
from .encoders import DerivedEncoder
from .scanner import AssetScanner


@dataclass
class ProcessResult:
    """
    Outcome of processing one asset.

    Attributes:
        regenerated: Missing resolution variants were regenerated
        derived_generated: Number of WebP files written
        bytes_saved: Bytes saved by the WebP files (only positive savings count)
        errors: Human-readable per-file error messages
    """
    regenerated: bool = False
    derived_generated: int = 0
    bytes_saved: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'regenerated': self.regenerated,
            'derived_generated': self.derived_generated,
            'bytes_saved': self.bytes_saved,
            'errors': list(self.errors),
        }


class AssetProcessor:
    """
    Regenerates missing variants and writes missing WebP files for an asset.

    Work is best effort per file: one failed file is recorded as an error
    and the remaining files are still processed.
    """

    def __init__(
        self,
        store,
        scanner: AssetScanner,
        encoder: DerivedEncoder,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize processor.

        Args:
            store: Asset metadata store (provides regenerate_variants)
            scanner: Scanner used for gap analysis
            encoder: WebP encoder chain
            logger: Optional logger instance
        """
        self.store = store
        self.scanner = scanner
        self.encoder = encoder
        self.logger = logger or logging.getLogger(__name__)

    def process_asset(self, asset_id: int) -> ProcessResult:
        result = ProcessResult()

        asset = self.store.get(asset_id)
        source = self.store.source_path(asset) if asset else None
        if not source or not os.path.exists(source):
            result.errors.append("File not found.")
            return result

        gaps = self.scanner.get_gaps(asset_id)

        if gaps.missing_resolutions:
            self.logger.debug(
                f"Asset {asset_id} missing sizes: {', '.join(gaps.missing_resolutions)}"
            )
            if self.store.regenerate_variants(asset_id):
                result.regenerated = True
                # Derive from the refreshed variants, not the stale ones.
                gaps = self.scanner.get_gaps(asset_id)
            else:
                result.errors.append("Could not regenerate image sizes.")

        for size_name, source_path in gaps.missing_derived.items():
            if not os.path.exists(source_path):
                continue
            webp_path = derived_path(source_path)
            if worth_serving(source_path, webp_path):
                continue

            if self.encoder.create_derived_artifact(source_path, webp_path):
                result.derived_generated += 1
                src_size = file_size(source_path)
                webp_size = file_size(webp_path)
                if src_size is not None and webp_size is not None and src_size > webp_size:
                    result.bytes_saved += src_size - webp_size
            else:
                result.errors.append(
                    f"WebP creation failed for {os.path.basename(source_path)}"
                )

        if result.derived_generated or result.regenerated:
            self.logger.info(
                f"Processed asset {asset_id}: {result.derived_generated} WebP, "
                f"{result.bytes_saved} bytes saved"
                + (", sizes regenerated" if result.regenerated else "")
            )
        return result

    def generate_derived_for_asset(self, asset_id: int) -> int:
        """
        Write WebP files for the full image and every existing variant that lacks one.

        Used right after an asset is ingested; does not regenerate sizes.

        Returns:
            Number of WebP files created
        """
        asset = self.store.get(asset_id)
        if asset is None:
            return 0

        paths = [self.store.source_path(asset)]
        for name in (asset.variants or {}):
            variant = self.store.variant_path(asset, name)
            if variant:
                paths.append(variant)

        count = 0
        for source_path in paths:
            if not os.path.exists(source_path):
                continue
            webp_path = derived_path(source_path)
            if worth_serving(source_path, webp_path):
                continue
            if self.encoder.create_derived_artifact(source_path, webp_path):
                count += 1
        return count
