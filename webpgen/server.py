"""
HTTP control endpoints for the batch engine (status, start, pause, run-chunk,
invalidate-sizes).

Authorization is the caller's concern; when a key is configured every
request must carry it as ``token`` (form or query) or ``X-Webpgen-Token``.
"""

import hmac
import logging
import time
from functools import wraps
from typing import Optional

from bottle import Bottle, request, response

from .engine import BatchEngine
from .exceptions import WebpgenError

logger = logging.getLogger(__name__)


class TokenException(Exception):
    """Raised when an auth token is missing or does not match."""
    pass


def get_timestamp():
    """Return an integer timestamp with one second resolution."""
    return int(time.time())


def validate_token(token_in: str, key: Optional[str]) -> None:
    if key is None:
        return
    if not token_in:
        raise TokenException("Auth token is missing.")
    if not hmac.compare_digest(token_in.encode(), key.encode()):
        raise TokenException("Auth token is invalid.")


def create_app(engine: BatchEngine, key: Optional[str] = None) -> Bottle:
    """
    Build the Bottle application around an engine.

    Args:
        engine: The batch engine to expose
        key: Shared secret required on every request (None disables auth)
    """
    app = Bottle()

    def require_token(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            params = request.forms if request.method == 'POST' else request.query
            token = params.get('token') or request.get_header('X-Webpgen-Token', '')
            try:
                validate_token(token, key)
            except TokenException as e:
                logger.warning(f"Rejected {request.method} {request.path}: {e}")
                response.status = 403
                return {'success': False, 'message': str(e)}
            response.set_header('X-Timestamp', str(get_timestamp()))
            try:
                return func(*args, **kwargs)
            except WebpgenError as e:
                logger.error(f"{request.path} failed: {e}")
                response.status = 500
                return {'success': False, 'message': str(e)}
        return wrapper

    @app.route('/status')
    @require_token
    def status():
        return {'success': True, 'data': engine.status()}

    @app.route('/start', method='POST')
    @require_token
    def start():
        result = engine.start()
        return {'success': result.success, 'data': result.to_dict()}

    @app.route('/pause', method='POST')
    @require_token
    def pause():
        state = engine.pause()
        return {'success': True, 'data': {'state': state.to_dict()}}

    @app.route('/run-chunk', method='POST')
    @require_token
    def run_chunk():
        return {'success': True, 'data': engine.run_chunk_now()}

    @app.route('/invalidate-sizes', method='POST')
    @require_token
    def invalidate_sizes():
        return {'success': True, 'data': {'sizes': engine.invalidate_sizes()}}

    return app
