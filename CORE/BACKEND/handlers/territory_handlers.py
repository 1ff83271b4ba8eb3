"""
Territory handlers: path captures, batch seeding and map queries.
"""
import logging

from CORE.BACKEND.errors import InvalidInput, StorageUnavailable
from CORE.BACKEND.models import BoundingBox, CaptureMethod
from CORE.BACKEND.territory_engine import get_engine

from .http_utils import int_param, query_params, read_json_body, respond_error, send_json

logger = logging.getLogger(__name__)


def handle_health(handler):
    """GET /api/health - storage reachability."""
    try:
        try:
            healthy = get_engine().ping()
        except StorageUnavailable:
            healthy = False
        send_json(handler, 200 if healthy else 503, {
            "success": healthy,
            "storage": "ok" if healthy else "unavailable",
        })
    except Exception as e:
        respond_error(handler, e, "Health")


def handle_capture_path(handler):
    """
    Handle POST /api/territories/capture-path
    Body: { "user": "u1", "color": "#FF0000", "path": [[lat, lng], ...],
            "options": { "autoClose": true, "minLoopSize": 3 } }
    """
    try:
        data = read_json_body(handler)
        result = get_engine().submit_path_payload(data)
        send_json(handler, 200, {"success": True, "result": result.to_dict()})
    except Exception as e:
        respond_error(handler, e, "Capture Path")


def handle_single_capture(handler):
    """
    Handle POST /api/territories/capture
    Body: { "user": "u1", "color": "#FF0000", "lat": 0.0, "lng": 0.0, "method": "click" }
    """
    try:
        data = read_json_body(handler)
        if not isinstance(data, dict):
            raise InvalidInput("Request body must be an object")
        missing = [k for k in ('user', 'color', 'lat', 'lng') if data.get(k) is None]
        if missing:
            raise InvalidInput(f"Missing required fields: {', '.join(missing)}")

        result = get_engine().submit_single_capture(
            data['user'], data['color'], data['lat'], data['lng'],
            data.get('method', CaptureMethod.CLICK),
        )
        send_json(handler, 200, {"success": True, "result": result.to_dict()})
    except Exception as e:
        respond_error(handler, e, "Single Capture")


def handle_batch_update(handler):
    """
    Handle POST /api/territories/batch
    Body: { "updates": { "u1": ["8b...", ...] }, "colors": { "u1": "#FF0000" } }
    """
    try:
        data = read_json_body(handler)
        if not isinstance(data, dict):
            raise InvalidInput("Request body must be an object")
        summary = get_engine().batch_update(data.get('updates'), data.get('colors'))
        send_json(handler, 200, {"success": True, **summary})
    except Exception as e:
        respond_error(handler, e, "Batch Update")


def handle_viewport(handler):
    """Handle GET /api/territories/viewport?bounds=west,south,east,north&resolution=11"""
    try:
        params = query_params(handler)
        bbox = BoundingBox.from_string(params.get('bounds'))
        resolution = int_param(params, 'resolution', None)

        data = get_engine().get_viewport(bbox, resolution)
        send_json(handler, 200, {"success": True, **data})
    except Exception as e:
        respond_error(handler, e, "Viewport")


def handle_get_region(handler, region_id):
    """Handle GET /api/territories/region/<id>"""
    try:
        region = get_engine().get_region(region_id)
        if region is None:
            send_json(handler, 404, {"success": False, "error": "Region not found"})
            return
        send_json(handler, 200, {"success": True, "region": region.to_dict()})
    except Exception as e:
        respond_error(handler, e, "Get Region")


def handle_get_paths(handler, user_id):
    """Handle GET /api/territories/paths/<user>?limit=50&offset=0"""
    try:
        params = query_params(handler)
        limit = int_param(params, 'limit', 50)
        offset = int_param(params, 'offset', 0)

        data = get_engine().get_user_paths(user_id, limit, offset)
        send_json(handler, 200, {"success": True, **data})
    except Exception as e:
        respond_error(handler, e, "Get Paths")


def handle_recent_paths(handler):
    """Handle GET /api/territories/paths?limit=50&offset=0&since=<ms>&until=<ms>"""
    try:
        params = query_params(handler)
        data = get_engine().get_recent_paths(
            int_param(params, 'limit', 50),
            int_param(params, 'offset', 0),
            int_param(params, 'since', None),
            int_param(params, 'until', None),
        )
        send_json(handler, 200, {"success": True, **data})
    except Exception as e:
        respond_error(handler, e, "Recent Paths")


def handle_global_stats(handler):
    """Handle GET /api/territories/stats"""
    try:
        stats = get_engine().get_global_stats()
        send_json(handler, 200, {"success": True, "stats": stats})
    except Exception as e:
        respond_error(handler, e, "Global Stats")
