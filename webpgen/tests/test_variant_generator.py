"""Tests for VariantGenerator."""

import os

import pytest
from PIL import Image

from webpgen.size_registry import ResolutionSize
from webpgen.variant_generator import VariantGenerator


class TestVariantGenerator:
    """Tests for VariantGenerator."""

    @pytest.fixture
    def source(self, tmp_path, write_image):
        return write_image(str(tmp_path / 'photo.jpg'), (400, 300))

    def test_init_defaults(self):
        assert VariantGenerator().quality == 82

    def test_fit_keeps_aspect_ratio(self, source):
        info = VariantGenerator().generate(source, ResolutionSize('medium', 200, 200))

        assert info.name == 'medium'
        assert info.file == 'photo-200x150.jpg'
        assert (info.width, info.height) == (200, 150)
        with Image.open(os.path.join(os.path.dirname(source), info.file)) as img:
            assert img.size == (200, 150)

    def test_crop_to_exact_box(self, source):
        info = VariantGenerator().generate(source, ResolutionSize('thumbnail', 50, 50, crop=True))

        assert (info.width, info.height) == (50, 50)
        assert info.file == 'photo-50x50.jpg'

    def test_unconstrained_height(self, source):
        info = VariantGenerator().generate(source, ResolutionSize('narrow', 100, 0))

        assert (info.width, info.height) == (100, 75)

    def test_never_upscales(self, source):
        """Test a size larger than the source keeps the source dimensions."""
        info = VariantGenerator().generate(source, ResolutionSize('large', 1024, 1024))

        assert (info.width, info.height) == (400, 300)

    def test_crop_never_upscales(self, source):
        info = VariantGenerator().generate(source, ResolutionSize('banner', 800, 100, crop=True))

        assert (info.width, info.height) == (400, 100)

    def test_png_keeps_format_and_alpha(self, tmp_path, write_image):
        source = write_image(str(tmp_path / 'logo.png'), (100, 100), mode='RGBA',
                             color=(10, 20, 30, 40), fmt='PNG')

        info = VariantGenerator().generate(source, ResolutionSize('small', 40, 40))

        with Image.open(os.path.join(str(tmp_path), info.file)) as img:
            assert img.format == 'PNG'
            assert img.mode == 'RGBA'

    def test_unsupported_extension(self, tmp_path, write_image):
        source = write_image(str(tmp_path / 'photo.bmp'), (20, 20), fmt='BMP')

        with pytest.raises(ValueError):
            VariantGenerator().generate(source, ResolutionSize('small', 10, 10))

    def test_undecodable_source(self, tmp_path):
        source = tmp_path / 'broken.jpg'
        source.write_bytes(b'garbage')

        with pytest.raises(OSError):
            VariantGenerator().generate(str(source), ResolutionSize('small', 10, 10))

    def test_no_temp_files_left(self, source, tmp_path):
        VariantGenerator().generate(source, ResolutionSize('medium', 200, 200))

        assert [n for n in os.listdir(str(tmp_path)) if n.startswith('.variant-')] == []


class TestConvertColorMode:
    """Tests for flattening transparency before JPEG output."""

    @pytest.mark.parametrize('mode', ['RGBA', 'LA', 'P', 'L', 'CMYK'])
    def test_converts_to_rgb(self, mode):
        img = Image.new(mode, (4, 4))

        assert VariantGenerator()._convert_color_mode(img).mode == 'RGB'

    def test_transparent_becomes_white(self):
        img = Image.new('RGBA', (2, 2), (255, 0, 0, 0))

        result = VariantGenerator()._convert_color_mode(img)

        assert result.getpixel((0, 0)) == (255, 255, 255)
