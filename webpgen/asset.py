"""
Asset - Record for a single library image and its resolution variants.
"""

import os
from dataclasses import dataclass, asdict
from typing import Dict, Optional


@dataclass
class VariantInfo:
    """
    A generated resolution variant of an asset.

    Attributes:
        name: Registered size name (e.g. 'thumbnail')
        file: Variant filename, stored next to the asset's source file
        width: Width in pixels
        height: Height in pixels
    """
    name: str
    file: str
    width: int = 0
    height: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'VariantInfo':
        return cls(**data)


@dataclass
class Asset:
    """
    A stored image with a source file and zero or more resolution variants.

    Attributes:
        asset_id: Stable identifier, ascending in creation order
        file: Source file path relative to the library root
        width: Source width in pixels (0 if unknown)
        height: Source height in pixels (0 if unknown)
        variants: Mapping of size name -> VariantInfo, or None when the asset
            has no variant metadata at all
    """
    asset_id: int
    file: str
    width: int = 0
    height: int = 0
    variants: Optional[Dict[str, VariantInfo]] = None

    @property
    def has_metadata(self) -> bool:
        return self.variants is not None

    @property
    def filename(self) -> str:
        return os.path.basename(self.file)

    @property
    def directory(self) -> str:
        """Source directory relative to the library root."""
        return os.path.dirname(self.file)

    def get_variant(self, name: str) -> Optional[VariantInfo]:
        if not self.variants:
            return None
        return self.variants.get(name)

    def set_variant(self, info: VariantInfo) -> None:
        """Add or replace the variant registered under ``info.name``."""
        if self.variants is None:
            self.variants = {}
        self.variants[info.name] = info

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = {
            'id': self.asset_id,
            'file': self.file,
            'width': self.width,
            'height': self.height,
        }
        if self.variants is not None:
            data['sizes'] = {
                name: info.to_dict() for name, info in self.variants.items()
            }
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Asset':
        """Create from dictionary. A missing or malformed 'sizes' entry means no metadata."""
        variants = None
        sizes = data.get('sizes')
        if isinstance(sizes, dict):
            variants = {}
            for name, info in sizes.items():
                if isinstance(info, dict) and info.get('file'):
                    variants[name] = VariantInfo(
                        name=name,
                        file=info['file'],
                        width=int(info.get('width', 0) or 0),
                        height=int(info.get('height', 0) or 0),
                    )
        return cls(
            asset_id=int(data['id']),
            file=data.get('file', ''),
            width=int(data.get('width', 0) or 0),
            height=int(data.get('height', 0) or 0),
            variants=variants,
        )
