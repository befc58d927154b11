"""Tests for CLI module."""

import json

import pytest

from webpgen.cli import create_parser, get_config, main
from webpgen.encoders import DerivedEncoder


@pytest.fixture
def encoder_available(mocker, fake_backend_class):
    """Replace the default encoder chain with a fake, always-available backend."""
    fake = DerivedEncoder([fake_backend_class()])
    mocker.patch.object(DerivedEncoder, 'default', return_value=fake)
    return fake


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    """Keep the host environment out of the CLI configuration."""
    for name in ('WEBPGEN_LIBRARY_ROOT', 'WEBPGEN_STATE_FILE', 'WEBPGEN_QUALITY',
                 'WEBPGEN_SIZES', 'WEBPGEN_KEY', 'WEBPGEN_PROCESSING_ENABLED',
                 'WEBPGEN_CONTINUATION_DELAY', 'WEBPGEN_ENCODE_TIMEOUT', 'WEBPGEN_SIZES_FILE'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv('WEBPGEN_SIZES', 'thumbnail:50x50:crop')
    monkeypatch.setenv('WEBPGEN_STATE_FILE', str(tmp_path / 'state.json'))


class TestCreateParser:
    """Tests for argument parser creation."""

    def test_parser_created(self):
        assert create_parser() is not None

    def test_common_arguments(self):
        args = create_parser().parse_args([
            'status', '-l', '/srv/uploads', '--state-file', 's.json',
            '-q', '70', '--sizes', 'a:1x1', '--json', '-v',
        ])

        assert args.command == 'status'
        assert args.library == '/srv/uploads'
        assert args.state_file == 's.json'
        assert args.quality == 70
        assert args.sizes == 'a:1x1'
        assert args.json is True
        assert args.verbose is True

    def test_gaps_ids(self):
        args = create_parser().parse_args(['gaps', '3', '7'])

        assert args.ids == [3, 7]

    def test_run_delay(self):
        args = create_parser().parse_args(['run', '-c', '0.5'])

        assert args.delay == 0.5

    def test_serve_defaults(self):
        args = create_parser().parse_args(['serve'])

        assert args.host == '127.0.0.1'
        assert args.port == 8085

    def test_get_config_overrides(self, cli_env):
        args = create_parser().parse_args([
            'run', '-l', '/srv/uploads', '-q', '60', '-c', '1', '--processing-enabled', 'no',
        ])

        config = get_config(args)

        assert config.library_root == '/srv/uploads'
        assert config.quality == 60
        assert config.continuation_delay == 1.0
        assert config.processing_enabled is False


class TestMain:
    """Tests for main entry point."""

    def test_no_command(self):
        assert main([]) == 1

    def test_missing_library(self, cli_env):
        assert main(['status']) == 1

    def test_invalid_sizes(self, cli_env, library_root):
        assert main(['status', '-l', library_root, '--sizes', 'broken']) == 1

    def test_index_and_status(self, cli_env, library_root, encoder_available, capsys):
        assert main(['index', '-l', library_root]) == 0
        assert "Indexed 2 new assets" in capsys.readouterr().out

        assert main(['status', '-l', library_root, '--json']) == 0
        status = json.loads(capsys.readouterr().out)
        assert status['total_assets'] == 2
        assert status['needing_work'] == 2
        assert status['state']['status'] == 'idle'

    def test_status_report(self, cli_env, library_root, encoder_available, capsys):
        main(['index', '-l', library_root])
        capsys.readouterr()

        assert main(['status', '-l', library_root]) == 0
        assert "BATCH STATUS" in capsys.readouterr().out

    def test_gaps(self, cli_env, library_root, encoder_available, capsys):
        main(['index', '-l', library_root])
        capsys.readouterr()

        assert main(['gaps', '1', '--json', '-l', library_root]) == 0
        gaps = json.loads(capsys.readouterr().out)
        assert gaps['id'] == 1
        assert gaps['missing_resolutions'] == ['thumbnail']

    def test_start_pause(self, cli_env, library_root, encoder_available, capsys):
        main(['index', '-l', library_root])

        assert main(['start', '-l', library_root]) == 0
        out = capsys.readouterr().out
        assert "Batch started." in out
        assert "webpgen run-chunk" in out
        assert main(['pause', '-l', library_root]) == 0
        assert "Status: paused" in capsys.readouterr().out

    def test_start_processing_disabled(self, cli_env, library_root, encoder_available):
        assert main(['start', '-l', library_root, '--processing-enabled', 'false']) == 1

    def test_run(self, cli_env, library_root, encoder_available, capsys):
        """Test a foreground run completes the pass."""
        main(['index', '-l', library_root])
        capsys.readouterr()

        assert main(['run', '-l', library_root, '-c', '0']) == 0
        out = capsys.readouterr().out
        assert "Status: idle" in out
        assert "Visited: 2/2" in out

        assert main(['status', '-l', library_root, '--json']) == 0
        assert json.loads(capsys.readouterr().out)['needing_work'] == 0

    def test_run_chunk_when_idle(self, cli_env, library_root, encoder_available, capsys):
        assert main(['run-chunk', '-l', library_root, '--json']) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload['chunk_result']['done'] is True
        assert payload['chunk_result']['assets_visited'] == 0

    def test_ingest(self, cli_env, library_root, encoder_available, write_image, capsys):
        path = write_image(library_root + '/new/n.jpg', (80, 60))

        assert main(['ingest', path, '-l', library_root]) == 0
        assert "sizes generated, 2 WebP files" in capsys.readouterr().out

    def test_ingest_missing_file(self, cli_env, library_root, encoder_available):
        assert main(['ingest', library_root + '/nope.jpg', '-l', library_root]) == 1

    def test_invalidate_sizes(self, cli_env, library_root, encoder_available, capsys):
        assert main(['invalidate-sizes', '-l', library_root]) == 0
        assert "Registered sizes: thumbnail" in capsys.readouterr().out

    def test_invalidate_sizes_from_file(self, cli_env, library_root, encoder_available,
                                        tmp_path, capsys):
        sizes_file = tmp_path / 'sizes.txt'
        sizes_file.write_text("thumbnail:50x50:crop\nlarge:1024x1024\n")

        assert main(['invalidate-sizes', '-l', library_root,
                     '--sizes-file', str(sizes_file)]) == 0
        assert "Registered sizes: thumbnail, large" in capsys.readouterr().out

    def test_invalid_sizes_file(self, cli_env, library_root, encoder_available, tmp_path):
        sizes_file = tmp_path / 'sizes.txt'
        sizes_file.write_text("broken\n")

        assert main(['status', '-l', library_root, '--sizes-file', str(sizes_file)]) == 1

    def test_reset_requires_confirmation(self, cli_env, library_root, encoder_available):
        assert main(['reset', '-l', library_root]) == 1
        assert main(['reset', '-l', library_root, '--yes']) == 0
