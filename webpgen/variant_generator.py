"""
VariantGenerator - Resizes a source image into a named resolution variant.
"""

import logging
import os
import tempfile
from typing import Optional, Tuple

from PIL import Image, ImageOps

from .asset import VariantInfo
from .size_registry import ResolutionSize

# Stand-in bound for an unconstrained (0) dimension.
UNBOUNDED = 100000


class VariantGenerator:
    """
    Generates resolution variants from source images using Pillow.

    Variants keep the source format and are written next to the source as
    ``<stem>-<W>x<H><ext>``. Images are never upscaled.
    """

    FORMATS = {
        '.jpg': 'JPEG',
        '.jpeg': 'JPEG',
        '.png': 'PNG',
        '.gif': 'GIF',
    }

    def __init__(self, quality: int = 82, logger: Optional[logging.Logger] = None):
        """
        Initialize variant generator.

        Args:
            quality: JPEG quality for output (default: 82)
            logger: Optional logger instance
        """
        self.quality = quality
        self.logger = logger or logging.getLogger(__name__)

    def generate(self, source_path: str, size: ResolutionSize) -> VariantInfo:
        """
        Write the variant for ``size`` next to ``source_path``.

        Returns:
            VariantInfo describing the written file

        Raises:
            OSError / ValueError: the source could not be decoded or written
        """
        stem, ext = os.path.splitext(source_path)
        output_format = self.FORMATS.get(ext.lower())
        if output_format is None:
            raise ValueError(f"Unsupported source format: {ext or '(none)'}")

        with Image.open(source_path) as img:
            img.load()
            resized = self._resize(img, size)
            if output_format == 'JPEG':
                resized = self._convert_color_mode(resized)

            width, height = resized.size
            target = f"{stem}-{width}x{height}{ext}"
            self._save_atomic(resized, target, output_format)

        self.logger.debug(f"Generated {size.name} variant: {os.path.basename(target)}")
        return VariantInfo(
            name=size.name,
            file=os.path.basename(target),
            width=width,
            height=height,
        )

    def _resize(self, img: Image.Image, size: ResolutionSize) -> Image.Image:
        box = self._target_box(img.size, size)
        if size.crop and size.width and size.height:
            return ImageOps.fit(img, box, Image.Resampling.LANCZOS)
        resized = img.copy()
        resized.thumbnail(box, Image.Resampling.LANCZOS)
        return resized

    @staticmethod
    def _target_box(source: Tuple[int, int], size: ResolutionSize) -> Tuple[int, int]:
        src_w, src_h = source
        width = size.width or UNBOUNDED
        height = size.height or UNBOUNDED
        if size.crop and size.width and size.height:
            return min(width, src_w), min(height, src_h)
        return width, height

    def _save_atomic(self, img: Image.Image, target: str, output_format: str) -> None:
        directory = os.path.dirname(target) or '.'
        fd, tmp_path = tempfile.mkstemp(prefix='.variant-', dir=directory)
        os.close(fd)
        try:
            if output_format == 'JPEG':
                img.save(tmp_path, format='JPEG', quality=self.quality, optimize=True)
            elif output_format == 'PNG':
                img.save(tmp_path, format='PNG', optimize=True)
            else:
                img.save(tmp_path, format=output_format)
            os.replace(tmp_path, target)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    def _convert_color_mode(self, img: Image.Image) -> Image.Image:
        """Flatten transparency onto white for formats without alpha."""
        if img.mode in ('RGBA', 'LA'):
            background = Image.new('RGB', img.size, (255, 255, 255))
            if img.mode == 'LA':
                img = img.convert('RGBA')
            background.paste(img, mask=img.split()[-1])
            return background
        elif img.mode == 'P':
            img = img.convert('RGBA')
            background = Image.new('RGB', img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[-1])
            return background
        elif img.mode != 'RGB':
            return img.convert('RGB')
        return img
