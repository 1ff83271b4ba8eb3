"""
Handler modules initialization.
"""
from .territory_handlers import (
    handle_health, handle_capture_path, handle_single_capture,
    handle_batch_update, handle_viewport, handle_get_region,
    handle_get_paths, handle_recent_paths, handle_global_stats
)
from .user_handlers import handle_user_stats, handle_user_regions, handle_leaderboard

__all__ = [
    'handle_health',
    'handle_capture_path', 'handle_single_capture', 'handle_batch_update',
    'handle_viewport', 'handle_get_region',
    'handle_get_paths', 'handle_recent_paths', 'handle_global_stats',
    'handle_user_stats', 'handle_user_regions', 'handle_leaderboard'
]
