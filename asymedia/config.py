import os
import logging
from pathlib import Path


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class MediaServerSettings:
    # --- Media ---
    MEDIA_ROOT: Path = Path(os.getenv("ASYMEDIA_ROOT", os.getcwd()))

    # --- Network ---
    HOST: str = os.getenv("ASYMEDIA_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("ASYMEDIA_PORT", "3000"))
    USE_SSL: bool = _env_bool("ASYMEDIA_SSL", False)
    ENABLE_CORS: bool = _env_bool("ASYMEDIA_CORS", True)

    # --- Streaming ---
    CHUNK_SIZE: int = int(os.getenv("ASYMEDIA_CHUNK_SIZE", str(512 * 1024)))
    IMAGE_CACHE_CONTROL: str = os.getenv("ASYMEDIA_IMAGE_CACHE_CONTROL", "public, max-age=86400")
    DEFAULT_CACHE_CONTROL: str = os.getenv("ASYMEDIA_DEFAULT_CACHE_CONTROL", "public, max-age=60")

    # --- Listing pages ---
    LISTING_CACHE_TTL: float = float(os.getenv("ASYMEDIA_LISTING_CACHE_TTL", "5"))

    # --- Logging ---
    # debug, info, warn or error
    LOG_LEVEL: str = os.getenv("ASYMEDIA_LOG_LEVEL", "info")

    def __init__(self, **overrides):
        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError('Unknown setting %s' % key)
            if value is not None:
                setattr(self, key, value)
        self.MEDIA_ROOT = Path(self.MEDIA_ROOT).expanduser().resolve()

    def get_log_level(self) -> int:
        """Maps LOG_LEVEL to a logging level, raises ValueError for unknown names."""
        name = str(self.LOG_LEVEL).strip().upper()
        if name == 'WARN':
            name = 'WARNING'
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise ValueError('Unknown log level %r' % self.LOG_LEVEL)
        return level

    def ensure_dirs(self):
        """Creates the media root if it doesn't exist yet."""
        self.MEDIA_ROOT.mkdir(parents=True, exist_ok=True)

    def __str__(self):
        t = '==== MediaServerSettings ====\r\n'
        for k in ['MEDIA_ROOT', 'HOST', 'PORT', 'USE_SSL', 'ENABLE_CORS', 'CHUNK_SIZE', 'LISTING_CACHE_TTL', 'LOG_LEVEL']:
            t += '%s: %s\r\n' % (k, getattr(self, k))
        return t


settings = MediaServerSettings()
