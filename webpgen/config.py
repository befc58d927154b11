"""
EngineConfig - Configuration for the derived image engine.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from .exceptions import ConfigError
from .size_registry import ResolutionSize, parse_sizes

DEFAULT_SIZES = 'thumbnail:150x150:crop,medium:300x300,medium_large:768x0,large:1024x1024'


def str2bool(value, default: bool = False) -> bool:
    """Convert common truthy/falsy strings into a boolean."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value = str(value).strip().lower()
    if value in ('yes', 'true', 't', 'y', '1', 'on'):
        return True
    if value in ('no', 'false', 'f', 'n', '0', 'off'):
        return False
    return default


@dataclass
class EngineConfig:
    """
    Configuration for scanning, transcoding and batch processing.

    Attributes:
        library_root: Directory holding the originals and their variants
        state_file: JSON file holding the batch state and cumulative stats
        quality: WebP quality (0-100)
        chunk_size: Number of assets visited per batch chunk
        continuation_delay: Seconds before a scheduled chunk runs
        encode_timeout: Seconds allowed for one external codec call
        processing_enabled: User toggle; False stops all batch work
        sizes: Configured resolution variants
        sizes_file: File re-read for the sizes on every reload (default: <library>/.webpgen-sizes)
        sizes_pinned: Keep `sizes` as given and ignore the reloadable sources
        key: Shared secret for the HTTP control endpoints (None disables auth)
    """
    library_root: str = ''
    state_file: Optional[str] = None
    quality: int = 82
    chunk_size: int = 15
    continuation_delay: float = 5.0
    encode_timeout: float = 120.0
    processing_enabled: bool = True
    sizes: List[ResolutionSize] = field(default_factory=lambda: parse_sizes(DEFAULT_SIZES))
    sizes_file: Optional[str] = None
    sizes_pinned: bool = False
    key: Optional[str] = None

    STATE_FILENAME = '.webpgen-state.json'
    SIZES_FILENAME = '.webpgen-sizes'

    @classmethod
    def from_env(cls) -> 'EngineConfig':
        """
        Build a configuration from WEBPGEN_* environment variables.

        Raises:
            ConfigError: a variable holds a malformed number or size list
        """
        try:
            return cls(
                library_root=os.environ.get('WEBPGEN_LIBRARY_ROOT', ''),
                state_file=os.environ.get('WEBPGEN_STATE_FILE') or None,
                quality=int(os.environ.get('WEBPGEN_QUALITY', '82')),
                continuation_delay=float(os.environ.get('WEBPGEN_CONTINUATION_DELAY', '5')),
                encode_timeout=float(os.environ.get('WEBPGEN_ENCODE_TIMEOUT', '120')),
                processing_enabled=str2bool(
                    os.environ.get('WEBPGEN_PROCESSING_ENABLED'), default=True
                ),
                sizes=parse_sizes(os.environ.get('WEBPGEN_SIZES') or DEFAULT_SIZES),
                sizes_file=os.environ.get('WEBPGEN_SIZES_FILE') or None,
                key=os.environ.get('WEBPGEN_KEY') or None,
            )
        except ValueError as e:
            raise ConfigError(f"Invalid environment configuration: {e}")

    @property
    def state_path(self) -> str:
        """Path of the state file, defaulting to a file inside the library."""
        if self.state_file:
            return self.state_file
        return os.path.join(self.library_root, self.STATE_FILENAME)

    @property
    def sizes_path(self) -> str:
        if self.sizes_file:
            return self.sizes_file
        return os.path.join(self.library_root, self.SIZES_FILENAME)

    def load_sizes(self) -> List[ResolutionSize]:
        """
        Read the current size configuration.

        The sizes file wins when it exists, then WEBPGEN_SIZES, then the sizes
        this config was built with. Pinned sizes are returned as they are.
        The sizes file takes one entry per line or comma separated entries;
        lines starting with '#' are ignored.

        Raises:
            ConfigError: the size source cannot be read or parsed
        """
        if self.sizes_pinned:
            return list(self.sizes)

        path = self.sizes_path
        try:
            if os.path.isfile(path):
                with open(path, 'r') as f:
                    lines = [line.strip() for line in f]
                return parse_sizes(','.join(
                    line for line in lines if line and not line.startswith('#')
                ))
            env_sizes = os.environ.get('WEBPGEN_SIZES')
            if env_sizes:
                return parse_sizes(env_sizes)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Invalid size configuration: {e}")
        return list(self.sizes)

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []
        if not self.library_root:
            errors.append("Library root is required (WEBPGEN_LIBRARY_ROOT or --library)")
        elif not os.path.isdir(self.library_root):
            errors.append(f"Library root does not exist: {self.library_root}")
        if not 0 <= self.quality <= 100:
            errors.append(f"Quality must be between 0 and 100, got {self.quality}")
        if self.chunk_size < 1:
            errors.append(f"Chunk size must be positive, got {self.chunk_size}")
        if self.continuation_delay < 0:
            errors.append("Continuation delay cannot be negative")
        try:
            sizes = self.load_sizes()
        except ConfigError as e:
            errors.append(str(e))
            sizes = []
        names = [size.name for size in sizes]
        if len(names) != len(set(names)):
            errors.append("Resolution size names must be unique")
        return errors
