"""
WebP encoder backends and the fallback chain that selects between them.

Backends are tried in preference order: the cwebp command line tool, then
ImageMagick, then Pillow. Each backend writes to a temporary sibling file and
only replaces the target once the output is complete.
"""

import logging
import os
import shutil
import tempfile
from typing import List, Optional, Sequence

import sh
from PIL import Image, UnidentifiedImageError, features

DEFAULT_QUALITY = 82


class EncoderBackend:
    """
    Base class for a WebP encoder.

    Subclasses implement ``available`` and ``_write``; ``encode`` handles the
    temporary file so a failed encode never leaves a partial target behind.
    """

    name = 'base'

    def __init__(self, quality: int = DEFAULT_QUALITY, logger: Optional[logging.Logger] = None):
        self.quality = quality
        self.logger = logger or logging.getLogger(__name__)

    def available(self) -> bool:
        raise NotImplementedError

    def _write(self, source_path: str, tmp_path: str) -> bool:
        raise NotImplementedError

    def encode(self, source_path: str, target_path: str) -> bool:
        """Encode ``source_path`` to WebP at ``target_path``. Returns success."""
        directory = os.path.dirname(target_path) or '.'
        try:
            fd, tmp_path = tempfile.mkstemp(prefix='.webpgen-', suffix='.webp', dir=directory)
            os.close(fd)
        except OSError as e:
            self.logger.warning(f"[{self.name}] Cannot create temp file in {directory}: {e}")
            return False

        try:
            if not self._write(source_path, tmp_path):
                return False
            if os.path.getsize(tmp_path) == 0:
                self.logger.warning(f"[{self.name}] Empty output for {os.path.basename(source_path)}")
                return False
            os.replace(tmp_path, target_path)
            return True
        except OSError as e:
            self.logger.warning(f"[{self.name}] Error writing {os.path.basename(target_path)}: {e}")
            return False
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)


class CwebpBackend(EncoderBackend):
    """Encodes with the ``cwebp`` command line tool."""

    name = 'cwebp'

    def __init__(self, binary: str = 'cwebp', timeout: Optional[float] = 120.0, **kwargs):
        super().__init__(**kwargs)
        self.binary = binary
        self.timeout = timeout

    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    def _write(self, source_path: str, tmp_path: str) -> bool:
        try:
            cwebp = sh.Command(self.binary)
            cwebp('-q', str(self.quality), '-quiet', '-metadata', 'none',
                  source_path, '-o', tmp_path, _timeout=self.timeout)
            return True
        except (sh.ErrorReturnCode, sh.CommandNotFound, sh.TimeoutException) as e:
            self.logger.warning(f"[cwebp] Failed on {os.path.basename(source_path)}: {e}")
            return False


class MagickBackend(EncoderBackend):
    """Encodes with ImageMagick (``magick`` or legacy ``convert``)."""

    name = 'imagemagick'

    def __init__(self, binaries: Sequence[str] = ('magick', 'convert'),
                 timeout: Optional[float] = 120.0, **kwargs):
        super().__init__(**kwargs)
        self.binaries = tuple(binaries)
        self.timeout = timeout
        self._binary: Optional[str] = None
        self._checked = False

    def _find_binary(self) -> Optional[str]:
        if self._checked:
            return self._binary
        self._checked = True
        for candidate in self.binaries:
            path = shutil.which(candidate)
            if not path:
                continue
            try:
                formats = str(sh.Command(path)('-list', 'format', _timeout=30))
            except (sh.ErrorReturnCode, sh.CommandNotFound, sh.TimeoutException):
                continue
            if 'WEBP' in formats.upper():
                self._binary = path
                break
        return self._binary

    def available(self) -> bool:
        return self._find_binary() is not None

    def _write(self, source_path: str, tmp_path: str) -> bool:
        binary = self._find_binary()
        if binary is None:
            return False
        try:
            convert = sh.Command(binary)
            # [0] selects the first frame of animated sources.
            convert(f"{source_path}[0]", '-strip', '-quality', str(self.quality),
                    f"webp:{tmp_path}", _timeout=self.timeout)
            return True
        except (sh.ErrorReturnCode, sh.CommandNotFound, sh.TimeoutException) as e:
            self.logger.warning(f"[imagemagick] Failed on {os.path.basename(source_path)}: {e}")
            return False


class PillowBackend(EncoderBackend):
    """Baseline encoder using Pillow. Handles JPEG, PNG and GIF sources."""

    name = 'pillow'

    SUPPORTED_FORMATS = {'JPEG', 'PNG', 'GIF'}

    def available(self) -> bool:
        return bool(features.check('webp'))

    def _write(self, source_path: str, tmp_path: str) -> bool:
        try:
            with Image.open(source_path) as img:
                if img.format not in self.SUPPORTED_FORMATS:
                    self.logger.warning(
                        f"[pillow] Unsupported format {img.format} for {os.path.basename(source_path)}"
                    )
                    return False
                img.load()
                converted = self._convert_color_mode(img)
                # No exif/icc_profile arguments: metadata is stripped.
                converted.save(tmp_path, format='WEBP', quality=self.quality, method=4)
            return True
        except (UnidentifiedImageError, OSError, ValueError) as e:
            self.logger.warning(f"[pillow] Failed on {os.path.basename(source_path)}: {e}")
            return False

    @staticmethod
    def _convert_color_mode(img: Image.Image) -> Image.Image:
        """Bring the image into a mode the WebP encoder accepts, keeping alpha."""
        if img.mode in ('RGB', 'RGBA'):
            return img
        if img.mode in ('LA', 'PA') or (img.mode == 'P' and 'transparency' in img.info):
            return img.convert('RGBA')
        return img.convert('RGB')


class DerivedEncoder:
    """
    Ordered, first-success selection over encoder backends.
    """

    def __init__(
        self,
        backends: List[EncoderBackend],
        logger: Optional[logging.Logger] = None
    ):
        self.backends = list(backends)
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def default(
        cls,
        quality: int = DEFAULT_QUALITY,
        timeout: Optional[float] = 120.0,
        logger: Optional[logging.Logger] = None
    ) -> 'DerivedEncoder':
        """The standard cwebp -> ImageMagick -> Pillow chain."""
        return cls([
            CwebpBackend(quality=quality, timeout=timeout, logger=logger),
            MagickBackend(quality=quality, timeout=timeout, logger=logger),
            PillowBackend(quality=quality, logger=logger),
        ], logger=logger)

    def available_backends(self) -> List[EncoderBackend]:
        return [backend for backend in self.backends if backend.available()]

    def has_backend(self) -> bool:
        return any(backend.available() for backend in self.backends)

    def create_derived_artifact(self, source_path: str, target_path: str) -> bool:
        """
        Create the WebP file for ``source_path`` at ``target_path``.

        Returns:
            True as soon as one backend succeeds, False if all fail
        """
        for backend in self.backends:
            if not backend.available():
                continue
            if backend.encode(source_path, target_path):
                self.logger.debug(
                    f"Encoded {os.path.basename(target_path)} with {backend.name}"
                )
                return True
        return False
