"""
LocalAssetStore - Asset metadata store over a local image library.

The library is a directory tree of original images. Asset metadata (ids,
source files and generated resolution variants) lives in a JSON index at
the library root.
"""

import json
import logging
import os
import re
import tempfile
import threading
from typing import Dict, List, Optional, Tuple

from PIL import Image
from retrying import retry

from .asset import Asset
from .exceptions import LibraryError
from .size_registry import SizeRegistry
from .variant_generator import VariantGenerator


def _is_os_error(exc: Exception) -> bool:
    return isinstance(exc, OSError)


class LocalAssetStore:
    """
    Asset metadata store backed by ``library.json`` under the library root.

    Ids are assigned in ascending order as originals are indexed, so
    paginated listings are stable over an unchanged library.
    """

    INDEX_FILENAME = 'library.json'
    IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif'}

    # Pattern to match variant filenames: stem-WxH.ext
    # Captures: (stem, width, height, ext)
    VARIANT_PATTERN = re.compile(r'^(.+)-(\d+)x(\d+)(\.[^.]+)$')

    def __init__(
        self,
        root_path: str,
        registry: SizeRegistry,
        variant_generator: Optional[VariantGenerator] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the store.

        Args:
            root_path: Library root directory
            registry: Registered resolution sizes
            variant_generator: Resizer used to regenerate variants
            logger: Optional logger instance
        """
        self.root_path = os.path.abspath(root_path)
        self.registry = registry
        self.variant_generator = variant_generator or VariantGenerator(logger=logger)
        self.logger = logger or logging.getLogger(__name__)
        self._assets: Dict[int, Asset] = {}
        self._next_id = 1
        self._loaded_signature: Optional[Tuple[int, int]] = None
        self._lock = threading.RLock()

    @property
    def index_path(self) -> str:
        return os.path.join(self.root_path, self.INDEX_FILENAME)

    # Queries

    def list_ids(self, limit: int = 0, offset: int = 0) -> List[int]:
        """Asset ids in ascending order; ``limit=0`` returns everything from ``offset``."""
        with self._lock:
            self._refresh()
            ids = sorted(self._assets)
        if offset:
            ids = ids[offset:]
        if limit > 0:
            ids = ids[:limit]
        return ids

    def count(self) -> int:
        with self._lock:
            self._refresh()
            return len(self._assets)

    def get(self, asset_id: int) -> Optional[Asset]:
        with self._lock:
            self._refresh()
            asset = self._assets.get(asset_id)
            return Asset.from_dict(asset.to_dict()) if asset else None

    def source_path(self, asset: Asset) -> str:
        return os.path.join(self.root_path, asset.file)

    def variant_path(self, asset: Asset, name: str) -> Optional[str]:
        """Absolute path of a recorded variant, or None if none is recorded."""
        info = asset.get_variant(name)
        if info is None:
            return None
        return os.path.join(self.root_path, asset.directory, info.file)

    # Mutations

    def regenerate_variants(self, asset_id: int) -> bool:
        """
        Regenerate every registered size for an asset and record the result.

        Returns:
            True if metadata was rebuilt, False if the source is missing or
            could not be decoded
        """
        with self._lock:
            self._refresh()
            asset = self._assets.get(asset_id)
            if asset is None:
                self.logger.warning(f"Cannot regenerate unknown asset {asset_id}")
                return False

            source = self.source_path(asset)
            if not os.path.exists(source):
                self.logger.warning(f"Cannot regenerate {asset.filename}: source missing")
                return False

            try:
                width, height = self._probe_dimensions(source)
                variants = {}
                for size in self.registry.sizes():
                    variants[size.name] = self.variant_generator.generate(source, size)
            except (OSError, ValueError) as e:
                self.logger.warning(f"Error regenerating sizes for {asset.filename}: {e}")
                return False

            asset.width, asset.height = width, height
            asset.variants = variants
            self._save()
            self.logger.info(f"Regenerated {len(variants)} sizes for {asset.filename}")
            return True

    def add_asset(self, path: str) -> Asset:
        """Register a single original (absolute or root-relative path)."""
        with self._lock:
            self._refresh()
            rel = self._relative(path)
            existing = self._find_by_file(rel)
            if existing is not None:
                return existing
            asset = self._register(rel)
            self._save()
            return asset

    def index_directory(self) -> List[Asset]:
        """
        Walk the library and register every original not yet known.

        Files that look like generated variants of a sibling original are
        skipped. New files are registered in sorted path order.

        Returns:
            The newly registered assets
        """
        with self._lock:
            self._refresh()
            known = {asset.file for asset in self._assets.values()}
            known_variants = set()
            for asset in self._assets.values():
                for info in (asset.variants or {}).values():
                    known_variants.add(os.path.join(asset.directory, info.file))

            found = []
            for dirpath, dirnames, filenames in os.walk(self.root_path):
                dirnames[:] = sorted(d for d in dirnames if not d.startswith('.'))
                names = set(filenames)
                for filename in filenames:
                    ext = os.path.splitext(filename)[1].lower()
                    if ext not in self.IMAGE_EXTENSIONS or filename.startswith('.'):
                        continue
                    if self._looks_like_variant(filename, names):
                        continue
                    rel = os.path.relpath(os.path.join(dirpath, filename), self.root_path)
                    if rel in known or rel in known_variants:
                        continue
                    found.append(rel)

            added = [self._register(rel) for rel in sorted(found)]
            if added:
                self._save()
            self.logger.info(f"Indexed {len(added)} new assets ({len(self._assets)} total)")
            return added

    # Internals

    @classmethod
    def _looks_like_variant(cls, filename: str, siblings: set) -> bool:
        match = cls.VARIANT_PATTERN.match(filename)
        if not match:
            return False
        stem, _, _, ext = match.groups()
        return f"{stem}{ext}" in siblings

    def _register(self, rel: str) -> Asset:
        asset = Asset(asset_id=self._next_id, file=rel)
        self._assets[asset.asset_id] = asset
        self._next_id += 1
        return asset

    def _find_by_file(self, rel: str) -> Optional[Asset]:
        for asset in self._assets.values():
            if asset.file == rel:
                return asset
        return None

    def _relative(self, path: str) -> str:
        if os.path.isabs(path):
            return os.path.relpath(path, self.root_path)
        return os.path.normpath(path)

    @staticmethod
    def _probe_dimensions(path: str):
        with Image.open(path) as img:
            return img.size

    def _refresh(self) -> None:
        """Reload the index if it changed on disk since the last load."""
        try:
            stat = os.stat(self.index_path)
        except OSError:
            if self._loaded_signature is not None:
                self._assets, self._next_id = {}, 1
                self._loaded_signature = None
            return
        signature = (stat.st_mtime_ns, stat.st_size)
        if signature == self._loaded_signature:
            return

        try:
            with open(self.index_path, 'r') as f:
                data = json.load(f)
            assets = {}
            for item in data.get('assets', []):
                asset = Asset.from_dict(item)
                assets[asset.asset_id] = asset
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise LibraryError(f"Cannot read library index {self.index_path}: {e}")

        self._assets = assets
        self._next_id = max(int(data.get('next_id', 1)), max(assets, default=0) + 1)
        self._loaded_signature = signature

    @retry(retry_on_exception=_is_os_error, stop_max_attempt_number=3, wait_exponential_multiplier=100)
    def _save(self) -> None:
        data = {
            'next_id': self._next_id,
            'assets': [self._assets[i].to_dict() for i in sorted(self._assets)],
        }
        fd, tmp_path = tempfile.mkstemp(prefix='.library-', suffix='.json', dir=self.root_path)
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.index_path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        stat = os.stat(self.index_path)
        self._loaded_signature = (stat.st_mtime_ns, stat.st_size)
