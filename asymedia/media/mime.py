import enum
import os

DEFAULT_MIME_TYPE = 'application/octet-stream'

MIME_MAP = {
    # video
    'mp4': 'video/mp4',
    'mkv': 'video/x-matroska',
    'avi': 'video/x-msvideo',
    'mov': 'video/quicktime',
    'webm': 'video/webm',
    'flv': 'video/x-flv',
    'wmv': 'video/x-ms-wmv',
    'm4v': 'video/x-m4v',
    'ts': 'video/MP2T',
    'mpeg': 'video/mpeg',
    'mpg': 'video/mpeg',
    'mts': 'video/MP2T',
    'm2ts': 'video/MP2T',
    # images
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'gif': 'image/gif',
    'webp': 'image/webp',
    'bmp': 'image/bmp',
    'tif': 'image/tiff',
    'tiff': 'image/tiff',
    'avif': 'image/avif',
    'heic': 'image/heic',
    'ico': 'image/x-icon',
    'svg': 'image/svg+xml',
    # audio
    'mp3': 'audio/mpeg',
    'wav': 'audio/wav',
    'aac': 'audio/aac',
    'flac': 'audio/flac',
    'ogg': 'audio/ogg',
    'm4a': 'audio/mp4',
}


class MediaKind(enum.Enum):
    VIDEO = 'video'
    IMAGE = 'image'
    AUDIO = 'audio'
    OTHER = 'other'


def get_extension(filename:str) -> str:
    """Lowercased extension without the leading dot, '' if there is none."""
    return os.path.splitext(filename)[1].lower().lstrip('.')


def get_mime_type(filename:str) -> str:
    return MIME_MAP.get(get_extension(filename), DEFAULT_MIME_TYPE)


def supported_extensions():
    return list(MIME_MAP.keys())


def _extensions_with_prefix(prefix):
    return [ext for ext, mime_type in MIME_MAP.items() if mime_type.startswith(prefix)]


def image_extensions():
    return _extensions_with_prefix('image/')


def audio_extensions():
    return _extensions_with_prefix('audio/')


def is_image_extension(ext:str) -> bool:
    if not ext:
        return False
    return ext.lower().lstrip('.') in image_extensions()


def is_audio_extension(ext:str) -> bool:
    if not ext:
        return False
    return ext.lower().lstrip('.') in audio_extensions()


def is_image_mime(mime_type:str) -> bool:
    return mime_type is not None and mime_type.startswith('image/')


def classify(filename:str) -> MediaKind:
    mime_type = get_mime_type(filename)
    if mime_type.startswith('video/'):
        return MediaKind.VIDEO
    if mime_type.startswith('image/'):
        return MediaKind.IMAGE
    if mime_type.startswith('audio/'):
        return MediaKind.AUDIO
    return MediaKind.OTHER
