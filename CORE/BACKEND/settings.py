"""
Engine configuration read from environment variables.
server.py loads .env into os.environ before this is read.
"""
import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def _env_int(name, default):
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer, defaulting to {default}")
        return default


def _env_bool(name, default):
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    value = raw.strip().lower()
    if value in ('1', 'true', 'yes', 'on'):
        return True
    if value in ('0', 'false', 'no', 'off'):
        return False
    logger.warning(f"{name}={raw!r} is not a boolean, defaulting to {default}")
    return default


def _env_choice(name, default, choices):
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    value = raw.strip().lower()
    if value not in choices:
        logger.warning(f"{name}={raw!r} not in {sorted(choices)}, defaulting to {default}")
        return default
    return value


@dataclass
class EngineSettings:
    game_resolution: int = 11
    region_resolution: int = 4
    max_path_points: int = 500
    max_fill_cells: int = 50000
    min_loop_size: int = 3
    auto_close: bool = True
    viewport_samples: int = 5
    storage_backend: str = 'redis'
    storage_max_retries: int = 3
    notifier_backend: str = 'log'

    @classmethod
    def from_env(cls):
        settings = cls(
            game_resolution=_env_int('GAME_RESOLUTION', cls.game_resolution),
            region_resolution=_env_int('REGION_RESOLUTION', cls.region_resolution),
            max_path_points=_env_int('MAX_PATH_POINTS', cls.max_path_points),
            max_fill_cells=_env_int('MAX_FILL_CELLS', cls.max_fill_cells),
            min_loop_size=_env_int('MIN_LOOP_SIZE', cls.min_loop_size),
            auto_close=_env_bool('AUTO_CLOSE', cls.auto_close),
            viewport_samples=_env_int('VIEWPORT_SAMPLES', cls.viewport_samples),
            storage_backend=_env_choice('STORAGE_BACKEND', cls.storage_backend, {'redis', 'memory'}),
            storage_max_retries=_env_int('STORAGE_MAX_RETRIES', cls.storage_max_retries),
            notifier_backend=_env_choice('NOTIFIER_BACKEND', cls.notifier_backend, {'log', 'redis'}),
        )

        if settings.region_resolution >= settings.game_resolution:
            logger.warning(
                f"REGION_RESOLUTION ({settings.region_resolution}) must be coarser than "
                f"GAME_RESOLUTION ({settings.game_resolution}), defaulting to 11/4"
            )
            settings.game_resolution = cls.game_resolution
            settings.region_resolution = cls.region_resolution

        return settings
