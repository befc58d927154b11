"""
GapReport - Per-asset work still to be done.
"""

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class GapReport:
    """
    Missing resolution variants and missing (or bloated) WebP files of one asset.

    Computed on demand and never cached; the filesystem may change underneath.

    Attributes:
        missing_resolutions: Registered size names without a generated file
        missing_derived: 'full' or size name -> absolute path of the file
            that needs a WebP sibling
    """
    missing_resolutions: List[str] = field(default_factory=list)
    missing_derived: Dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.missing_resolutions and not self.missing_derived

    @property
    def needs_work(self) -> bool:
        return not self.is_empty

    def to_dict(self) -> dict:
        return {
            'missing_resolutions': list(self.missing_resolutions),
            'missing_derived': dict(self.missing_derived),
        }
