"""
User handlers: per-user stats, region ownership and the leaderboard.
"""
import logging

from CORE.BACKEND.territory_engine import get_engine

from .http_utils import int_param, query_params, respond_error, send_json

logger = logging.getLogger(__name__)


def handle_user_stats(handler, user_id):
    """Handle GET /api/users/<id>/stats"""
    try:
        stats = get_engine().get_user_stats(user_id)
        if stats is None:
            send_json(handler, 404, {"success": False, "error": "User not found"})
            return
        send_json(handler, 200, {"success": True, "stats": stats.to_dict()})
    except Exception as e:
        respond_error(handler, e, "User Stats")


def handle_user_regions(handler, user_id):
    """
    Handle GET /api/users/<id>/regions
    Returns the user's cell share in every region they have captured in.
    """
    try:
        regions = get_engine().get_region_ownership(user_id)
        send_json(handler, 200, {
            "success": True,
            "userId": user_id,
            "regions": regions,
            "ownedRegions": sum(1 for r in regions if r["owned"]),
        })
    except Exception as e:
        respond_error(handler, e, "User Regions")


def handle_leaderboard(handler):
    """Handle GET /api/leaderboard?limit=10&offset=0"""
    try:
        params = query_params(handler)
        limit = int_param(params, 'limit', 10)
        offset = int_param(params, 'offset', 0)

        entries = get_engine().get_leaderboard(limit, offset)
        leaderboard = [
            {**stats.to_dict(), "rank": rank}
            for rank, stats in enumerate(entries, start=offset + 1)
        ]
        send_json(handler, 200, {"success": True, "leaderboard": leaderboard})
    except Exception as e:
        respond_error(handler, e, "Leaderboard")
