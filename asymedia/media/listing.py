import os
import re
import time
import asyncio
import collections

from asymedia import logger
from asymedia.errors import NotFound
from asymedia.media.mime import MediaKind, classify, get_extension, supported_extensions, image_extensions

# files that don't count against a folder being a comic
IGNORED_EXTENSIONS = {'torrent', 'nfo', 'txt', 'url', 'sfv', 'db', 'ds_store'}

_NUM_RE = re.compile(r'(\d+)')

DirEntry = collections.namedtuple('DirEntry', ['name', 'path', 'is_dir', 'is_file'])


def natural_key(name:str):
    """Sort key that orders 'page2' before 'page10', case-insensitive."""
    parts = _NUM_RE.split(name.casefold())
    return [(0, int(part), '') if part.isdigit() else (1, 0, part) for part in parts]


def join_relative(base:str, name:str) -> str:
    if not base:
        return name
    return base.rstrip('/') + '/' + name


class FolderEntry:
    def __init__(self, name, relative, is_comic=False, cover=None, page_count=0):
        self.name = name
        self.relative = relative
        self.is_comic = is_comic
        self.cover = cover
        self.page_count = page_count

    def __repr__(self):
        return 'FolderEntry(%r, comic=%s, pages=%s)' % (self.name, self.is_comic, self.page_count)


class MediaEntry:
    def __init__(self, name, relative, kind:MediaKind):
        self.name = name
        self.relative = relative
        self.kind = kind

    def __repr__(self):
        return 'MediaEntry(%r, %s)' % (self.name, self.kind.name)


class FolderListing:
    def __init__(self, relative, folders, media):
        self.relative = relative
        self.folders = folders
        self.media = media

    @property
    def title(self):
        if not self.relative:
            return ''
        return self.relative.rstrip('/').split('/')[-1]


def _is_dir(entry):
    try:
        return entry.is_dir()
    except OSError:
        return False


def _is_file(entry):
    try:
        return entry.is_file()
    except OSError:
        return False


def _read_dir(path):
    with os.scandir(path) as it:
        return [DirEntry(e.name, e.path, _is_dir(e), _is_file(e)) for e in it]


async def read_dir(path):
    """
    Directory entries of `path` with their types already resolved. The
    scandir iteration and the per-entry stat calls run in the default
    executor. OSError propagates.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _read_dir, path)


async def _scandir(path):
    try:
        return await read_dir(path)
    except (FileNotFoundError, NotADirectoryError) as e:
        raise NotFound('Folder not found: %r' % e) from e


async def inspect_subfolder(path:str, relative:str, name:str) -> FolderEntry:
    """A folder is a comic when every countable file in it is an image."""
    entry = FolderEntry(name, relative)
    try:
        files = [d.name for d in await read_dir(path) if d.is_file]
    except OSError as e:
        logger.debug('[LISTING] Could not inspect %s: %r' % (relative, e))
        return entry

    countable = []
    for fn in files:
        if fn.startswith('.'):
            continue
        ext = get_extension(fn)
        if not ext or ext in IGNORED_EXTENSIONS:
            continue
        countable.append(fn)

    images = image_extensions()
    if countable and all(get_extension(fn) in images for fn in countable):
        countable.sort(key=natural_key)
        entry.is_comic = True
        entry.cover = join_relative(relative, countable[0])
        entry.page_count = len(countable)
    return entry


async def list_folder(folder_path:str, relative:str) -> FolderListing:
    """
    Lists a folder already resolved to `folder_path`.

    Args:
        folder_path (str): canonical absolute folder path
        relative (str): the same folder relative to the media root, '' for the root

    Returns:
        FolderListing: sub-folders and playable media, naturally sorted
    """
    dirents = sorted(await _scandir(folder_path), key=lambda x: natural_key(x.name))

    supported = supported_extensions()
    subfolders = [d for d in dirents if d.is_dir]
    folders = await asyncio.gather(*[
        inspect_subfolder(d.path, join_relative(relative, d.name), d.name) for d in subfolders
    ])
    media = [
        MediaEntry(d.name, join_relative(relative, d.name), classify(d.name))
        for d in dirents
        if not d.is_dir and d.is_file and get_extension(d.name) in supported
    ]

    logger.debug('[LISTING] %s: %s folders, %s media files' % (relative or '/', len(folders), len(media)))
    return FolderListing(relative, list(folders), media)


async def sibling_media(directory:str, relative_dir:str, kind:MediaKind, current:str = None):
    """
    Files of `kind` in `directory` in natural order.

    Returns:
        tuple: (list of root relative paths, index of `current` or 0)
    """
    names = [d.name for d in await _scandir(directory) if d.is_file and classify(d.name) == kind]
    names.sort(key=natural_key)
    start_index = 0
    if current is not None and current in names:
        start_index = names.index(current)
    return [join_relative(relative_dir, n) for n in names], start_index


class ListingCache:
    """Rendered listing pages with a staleness window of `ttl` seconds."""
    def __init__(self, ttl:float = 5.0, clock = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self.entries = {}

    def _is_fresh(self, ts, now):
        return now - ts < self.ttl

    def get(self, key):
        if self.ttl <= 0:
            return None
        entry = self.entries.get(key)
        if entry is None:
            return None
        ts, value = entry
        if not self._is_fresh(ts, self.clock()):
            del self.entries[key]
            return None
        return value

    def put(self, key, value):
        if self.ttl <= 0:
            return
        now = self.clock()
        # drop every expired page, not only the one for this key
        self.entries = {k: v for k, v in self.entries.items() if self._is_fresh(v[0], now)}
        self.entries[key] = (now, value)

    def clear(self):
        self.entries = {}
