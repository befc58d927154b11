"""
Pytest fixtures for webpgen tests.
"""

import os

import pytest


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    import logging
    return logging.getLogger('test')


def _write_image(path, size, mode='RGB', color='red', fmt='JPEG'):
    from PIL import Image

    os.makedirs(os.path.dirname(path), exist_ok=True)
    img = Image.new(mode, size, color=color)
    img.save(path, format=fmt)
    return path


@pytest.fixture
def write_image():
    """Fixture providing a helper that writes a Pillow-generated image to disk."""
    return _write_image


@pytest.fixture
def library_root(tmp_path):
    """Fixture providing a small library with one JPEG and one transparent PNG."""
    root = tmp_path / 'library'
    _write_image(str(root / 'photos' / 'a.jpg'), (400, 300))
    _write_image(str(root / 'photos' / 'b.png'), (120, 80), mode='RGBA',
                 color=(0, 128, 255, 128), fmt='PNG')
    return str(root)


@pytest.fixture
def sizes():
    """Fixture providing a crop size and a fit size."""
    from webpgen.size_registry import parse_sizes
    return parse_sizes('thumbnail:50x50:crop,medium:200x200')


@pytest.fixture
def registry(sizes, logger):
    """Fixture providing a size registry over the test sizes."""
    from webpgen.size_registry import SizeRegistry
    return SizeRegistry.from_sizes(sizes, logger=logger)


@pytest.fixture
def store(library_root, registry, logger):
    """Fixture providing an indexed asset store over the test library."""
    from webpgen.asset_store import LocalAssetStore

    asset_store = LocalAssetStore(library_root, registry, logger=logger)
    asset_store.index_directory()
    return asset_store


@pytest.fixture
def scanner(store, registry, logger):
    """Fixture providing a scanner over the test store."""
    from webpgen.scanner import AssetScanner
    return AssetScanner(store, registry, logger=logger)


@pytest.fixture
def fake_backend_class():
    """Fixture providing an encoder backend that writes a fixed number of bytes."""
    from webpgen.encoders import EncoderBackend

    class FakeBackend(EncoderBackend):
        name = 'fake'

        def __init__(self, output_size=10, succeed=True, is_available=True, **kwargs):
            super().__init__(**kwargs)
            self.output_size = output_size
            self.succeed = succeed
            self.is_available = is_available
            self.calls = []

        def available(self):
            return self.is_available

        def _write(self, source_path, tmp_path):
            self.calls.append(source_path)
            if not self.succeed:
                # Leave partial output behind to check it is cleaned up.
                with open(tmp_path, 'wb') as f:
                    f.write(b'partial')
                return False
            with open(tmp_path, 'wb') as f:
                f.write(b'W' * self.output_size)
            return True

    return FakeBackend


@pytest.fixture
def fake_encoder(fake_backend_class, logger):
    """Fixture providing an encoder chain with one small-output fake backend."""
    from webpgen.encoders import DerivedEncoder
    return DerivedEncoder([fake_backend_class(output_size=10, logger=logger)], logger=logger)


@pytest.fixture
def processor(store, scanner, fake_encoder, logger):
    """Fixture providing an asset processor with the fake encoder."""
    from webpgen.generator import AssetProcessor
    return AssetProcessor(store, scanner, fake_encoder, logger=logger)


class FakeScanner:
    """In-memory scanner over ids 1..count; ids in ``done`` have no gaps."""

    def __init__(self, count, done=()):
        self.ids = list(range(1, count + 1))
        self.done = set(done)
        self.gap_calls = []

    def list_asset_ids(self, limit=0, offset=0):
        ids = self.ids[offset:]
        return ids[:limit] if limit > 0 else ids

    def count_assets(self):
        return len(self.ids)

    def get_gaps(self, asset_id):
        from webpgen.gap_report import GapReport

        self.gap_calls.append(asset_id)
        if asset_id in self.done:
            return GapReport()
        return GapReport(missing_derived={'full': f'/library/{asset_id}.jpg'})

    def get_counts_needing_work(self):
        needing = len([i for i in self.ids if i not in self.done])
        return len(self.ids), needing


class FakeProcessor:
    """Processor that returns a fixed result and marks the asset done."""

    def __init__(self, scanner, derived=1, bytes_saved=0, errors=()):
        self.scanner = scanner
        self.derived = derived
        self.bytes_saved = bytes_saved
        self.errors = list(errors)
        self.processed = []

    def process_asset(self, asset_id):
        from webpgen.generator import ProcessResult

        self.processed.append(asset_id)
        if not self.errors:
            self.scanner.done.add(asset_id)
        return ProcessResult(
            derived_generated=self.derived,
            bytes_saved=self.bytes_saved,
            errors=list(self.errors),
        )


@pytest.fixture
def fake_scanner_factory():
    """Fixture providing the in-memory scanner class."""
    return FakeScanner


@pytest.fixture
def fake_processor_factory():
    """Fixture providing the fixed-result processor class."""
    return FakeProcessor


@pytest.fixture
def make_deps():
    """Fixture providing a BatchDeps builder over fakes with a fixed clock."""
    from webpgen.batch import BatchDeps, Gate

    def _make(count=37, done=(), derived=1, bytes_saved=0, errors=(), gate=None):
        fake_scanner = FakeScanner(count, done=done)
        fake_processor = FakeProcessor(fake_scanner, derived=derived,
                                       bytes_saved=bytes_saved, errors=errors)
        return BatchDeps(
            scanner=fake_scanner,
            processor=fake_processor,
            gate=gate or Gate(),
            clock=lambda: 1700000000,
        )

    return _make


@pytest.fixture
def state_store(tmp_path, logger):
    """Fixture providing a state store in a temporary directory."""
    from webpgen.state_store import JsonStateStore
    return JsonStateStore(str(tmp_path / 'state' / 'webpgen-state.json'), logger=logger)
