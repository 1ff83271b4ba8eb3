"""
Outbound capture events for the realtime layer.

The websocket/session transport lives outside this service; it consumes
what a notifier emits. Notifier failures never fail a capture that has
already been written.
"""
import json
import logging

from redis.exceptions import RedisError

from .models import now_ms
from .redis_tools import CHANNEL_LEADERBOARD, CHANNEL_REGION

logger = logging.getLogger(__name__)


class RealtimeNotifier:
    """Interface: receives every applied capture."""

    def on_capture_applied(self, result, stats=None):
        raise NotImplementedError


class LoggingNotifier(RealtimeNotifier):
    def on_capture_applied(self, result, stats=None):
        logger.info(
            f"EVENT path-captured: user={result.user} type={result.path_type} "
            f"cells={len(result.claimed_cells)} regions={len(result.regions_affected)} "
            f"conflicts={len(result.conflicts)}"
        )


class RedisPublishNotifier(RealtimeNotifier):
    """
    Publishes JSON events over redis pub/sub:
        region:{id}   path-captured, one per affected region
        leaderboard   stats-update for the capturing user
    """

    def __init__(self, client):
        self.client = client

    def on_capture_applied(self, result, stats=None):
        timestamp = now_ms()
        try:
            for region_id in result.regions_affected:
                self.client.publish(CHANNEL_REGION.format(region_id), json.dumps({
                    "type": "path-captured",
                    "regionId": region_id,
                    "user": result.user,
                    "pathType": result.path_type,
                    "pathId": result.path_id,
                    "cellsCaptured": len(result.claimed_cells),
                    "conflicts": len(result.conflicts),
                    "timestamp": timestamp,
                }))

            if stats is not None:
                self.client.publish(CHANNEL_LEADERBOARD, json.dumps({
                    "type": "stats-update",
                    "stats": stats.to_dict(),
                    "timestamp": timestamp,
                }))
        except RedisError as e:
            logger.error(f"REDIS: failed to publish capture events for {result.user}: {e}")
