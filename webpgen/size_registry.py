"""
SizeRegistry - Process-wide registry of configured resolution variants.
"""

import logging
import threading
from dataclasses import dataclass, asdict
from typing import Callable, Dict, List, Optional


@dataclass(frozen=True)
class ResolutionSize:
    """
    A named output resolution.

    Attributes:
        name: Unique variant name (e.g. 'thumbnail')
        width: Maximum width in pixels (0 = unconstrained)
        height: Maximum height in pixels (0 = unconstrained)
        crop: Crop to the exact box instead of fitting inside it
    """
    name: str
    width: int
    height: int
    crop: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'ResolutionSize':
        return cls(**data)


def parse_sizes(text: str) -> List[ResolutionSize]:
    """
    Parse a comma separated size list.

    Each entry is ``name:WIDTHxHEIGHT`` with an optional ``:crop`` suffix,
    e.g. ``thumbnail:150x150:crop,large:1024x1024``.
    """
    sizes = []
    for entry in text.split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(':')
        if len(parts) < 2:
            raise ValueError(f"Invalid size entry: {entry!r}")
        name, dims = parts[0], parts[1]
        try:
            width, height = (int(v) for v in dims.lower().split('x'))
        except ValueError:
            raise ValueError(f"Invalid dimensions in size entry: {entry!r}")
        crop = len(parts) > 2 and parts[2].lower() == 'crop'
        sizes.append(ResolutionSize(name=name, width=width, height=height, crop=crop))
    return sizes


class SizeRegistry:
    """
    Cached list of configured resolution variants.

    The registry is read-mostly. It is loaded once from ``loader`` and kept
    until :meth:`invalidate` drops it wholesale (e.g. after a template switch
    changed the configured sizes).
    """

    def __init__(
        self,
        loader: Callable[[], List[ResolutionSize]],
        logger: Optional[logging.Logger] = None
    ):
        self._loader = loader
        self._cache: Optional[List[ResolutionSize]] = None
        self._lock = threading.Lock()
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_sizes(cls, sizes: List[ResolutionSize], logger=None) -> 'SizeRegistry':
        """Registry over a fixed list of sizes."""
        return cls(lambda: list(sizes), logger=logger)

    def sizes(self) -> List[ResolutionSize]:
        with self._lock:
            if self._cache is None:
                loaded = self._loader()
                seen = set()
                unique = []
                for size in loaded:
                    if size.name in seen:
                        self.logger.warning(f"Duplicate size name ignored: {size.name}")
                        continue
                    seen.add(size.name)
                    unique.append(size)
                self._cache = unique
                self.logger.debug(f"Loaded {len(unique)} registered sizes")
            return list(self._cache)

    def names(self) -> List[str]:
        return [size.name for size in self.sizes()]

    def by_name(self) -> Dict[str, ResolutionSize]:
        return {size.name: size for size in self.sizes()}

    def invalidate(self) -> None:
        """Drop the cached sizes; the next lookup reloads them."""
        with self._lock:
            self._cache = None
        self.logger.info("Registered size cache invalidated")
