"""Tests for the HTTP control endpoints."""

import io
import json
from unittest.mock import MagicMock
from wsgiref.util import setup_testing_defaults

import pytest

from webpgen.batch_state import BatchState, StartResult
from webpgen.engine import BatchEngine
from webpgen.exceptions import ConfigError, StateStoreError
from webpgen.server import TokenException, create_app, validate_token


def call(app, method, path, query='', headers=None):
    """Invoke the WSGI app and return (status code, headers, decoded JSON body)."""
    environ = {
        'REQUEST_METHOD': method,
        'PATH_INFO': path,
        'QUERY_STRING': query,
        'CONTENT_LENGTH': '0',
        'CONTENT_TYPE': 'application/x-www-form-urlencoded',
        'wsgi.input': io.BytesIO(b''),
    }
    for name, value in (headers or {}).items():
        environ['HTTP_' + name.upper().replace('-', '_')] = value
    setup_testing_defaults(environ)

    captured = {}

    def start_response(status, response_headers, exc_info=None):
        captured['status'] = int(status.split()[0])
        captured['headers'] = dict(response_headers)

    body = b''.join(app(environ, start_response))
    return captured['status'], captured['headers'], json.loads(body)


@pytest.fixture
def engine():
    mock = MagicMock(spec=BatchEngine)
    mock.status.return_value = {'state': BatchState().to_dict(), 'needing_work': 0}
    mock.start.return_value = StartResult(True, "Batch started.")
    mock.pause.return_value = BatchState(status='paused')
    mock.run_chunk_now.return_value = {'chunk_result': {'done': True}}
    mock.invalidate_sizes.return_value = ['thumbnail', 'large']
    return mock


class TestValidateToken:
    """Tests for validate_token."""

    def test_no_key(self):
        validate_token('', None)

    def test_valid(self):
        validate_token('secret', 'secret')

    @pytest.mark.parametrize('token', ['', 'wrong'])
    def test_invalid(self, token):
        with pytest.raises(TokenException):
            validate_token(token, 'secret')


class TestRoutes:
    """Tests for the Bottle routes."""

    def test_status(self, engine):
        status, headers, body = call(create_app(engine), 'GET', '/status')

        assert status == 200
        assert body == {'success': True, 'data': engine.status.return_value}
        assert 'X-Timestamp' in headers

    def test_start(self, engine):
        status, _, body = call(create_app(engine), 'POST', '/start')

        assert status == 200
        assert body['data'] == {'success': True, 'message': "Batch started."}
        engine.start.assert_called_once()

    def test_start_refused(self, engine):
        engine.start.return_value = StartResult(False, "Not ready or processing is disabled.")

        _, _, body = call(create_app(engine), 'POST', '/start')

        assert body['success'] is False

    def test_pause(self, engine):
        _, _, body = call(create_app(engine), 'POST', '/pause')

        assert body['data']['state']['status'] == 'paused'

    def test_run_chunk(self, engine):
        _, _, body = call(create_app(engine), 'POST', '/run-chunk')

        assert body['data'] == {'chunk_result': {'done': True}}

    def test_invalidate_sizes(self, engine):
        _, _, body = call(create_app(engine), 'POST', '/invalidate-sizes')

        assert body == {'success': True, 'data': {'sizes': ['thumbnail', 'large']}}
        engine.invalidate_sizes.assert_called_once()

    def test_invalidate_sizes_bad_source(self, engine):
        engine.invalidate_sizes.side_effect = ConfigError("Invalid size configuration: broken")

        status, _, body = call(create_app(engine), 'POST', '/invalidate-sizes')

        assert status == 500
        assert body['success'] is False

    def test_engine_error(self, engine):
        engine.status.side_effect = StateStoreError("corrupt")

        status, _, body = call(create_app(engine), 'GET', '/status')

        assert status == 500
        assert body == {'success': False, 'message': 'corrupt'}


class TestAuth:
    """Tests for token checks."""

    def test_missing_token(self, engine):
        status, _, body = call(create_app(engine, key='secret'), 'GET', '/status')

        assert status == 403
        assert body['success'] is False
        engine.status.assert_not_called()

    def test_query_token(self, engine):
        status, _, _ = call(create_app(engine, key='secret'), 'GET', '/status', query='token=secret')

        assert status == 200

    def test_header_token(self, engine):
        status, _, _ = call(create_app(engine, key='secret'), 'POST', '/start',
                            headers={'X-Webpgen-Token': 'secret'})

        assert status == 200
        engine.start.assert_called_once()

    def test_wrong_token(self, engine):
        status, _, _ = call(create_app(engine, key='secret'), 'POST', '/pause',
                            headers={'X-Webpgen-Token': 'nope'})

        assert status == 403
        engine.pause.assert_not_called()
