"""
Shared request/response helpers for the handler modules.
"""
import json
import logging
import traceback
import urllib.parse

from CORE.BACKEND.errors import (
    InvalidInput, PartialCaptureError, StorageConflict, StorageUnavailable
)

logger = logging.getLogger(__name__)

CAPTURE_FAILED = "capture failed, retry"


def send_json(handler, status, payload):
    handler.send_response(status)
    handler.send_header('Content-Type', 'application/json')
    handler.send_header('Access-Control-Allow-Origin', '*')
    handler.end_headers()
    handler.wfile.write(json.dumps(payload).encode())


def read_json_body(handler):
    content_length = int(handler.headers.get('Content-Length', 0))
    body = handler.rfile.read(content_length) if content_length else b''
    if not body:
        raise InvalidInput("Request body is required")
    try:
        return json.loads(body.decode())
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise InvalidInput("Invalid JSON body")


def query_params(handler):
    """First value of every query parameter."""
    parsed_path = urllib.parse.urlparse(handler.path)
    params = urllib.parse.parse_qs(parsed_path.query)
    return {key: values[0] for key, values in params.items()}


def int_param(params, name, default):
    raw = params.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidInput(f"{name} must be an integer")


def respond_error(handler, error, context):
    """
    Map engine errors to HTTP responses. Storage details go to the log,
    never to the client.
    """
    if isinstance(error, InvalidInput):
        logger.info(f"{context} rejected: {error.reason}")
        send_json(handler, 400, {"success": False, "error": error.reason})
        return

    logger.error(f"{context} Error: {error}")
    logger.error(traceback.format_exc())

    if isinstance(error, (PartialCaptureError, StorageConflict)):
        send_json(handler, 409, {"success": False, "error": CAPTURE_FAILED})
    elif isinstance(error, StorageUnavailable):
        send_json(handler, 503, {"success": False, "error": CAPTURE_FAILED})
    else:
        send_json(handler, 500, {"success": False, "error": "Internal server error"})
