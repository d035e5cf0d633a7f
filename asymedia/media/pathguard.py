"""
Containment checks for client supplied paths.

Every path that reaches the filesystem on behalf of a request goes through
`resolve`, which joins the (already percent-decoded) relative path onto the
media root, normalizes it, canonicalizes symlinks and only then checks that
the result is the root itself or lies below it.
"""

import os
import stat

import aiofiles.os

from asymedia.errors import PathUnsafe, NotFound


def canonical_root(root) -> str:
    return os.path.realpath(os.fspath(root))


def is_within(root:str, candidate:str) -> bool:
    """
    True when `candidate` is `root` or lies below it. The separator check keeps
    /media from matching /media-private.
    """
    if candidate == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return candidate.startswith(prefix)


def resolve(root, relative:str):
    """
    Resolves `relative` against `root`.

    Args:
        root: media root, absolute
        relative (str): percent-decoded relative path from the client

    Returns:
        tuple: (canonical absolute path, None) or (None, PathUnsafe)
    """
    try:
        root_real = canonical_root(root)
        if relative is None:
            relative = ''
        if '\x00' in relative:
            return None, PathUnsafe(relative, 'Embedded NUL byte in requested path')

        # leading separators stay part of the string, '/etc' means <root>/etc
        normalized = relative.replace('\\', '/').lstrip('/')
        joined = os.path.normpath(os.path.join(root_real, normalized))
        if not is_within(root_real, joined):
            return None, PathUnsafe(relative)

        candidate = os.path.realpath(joined)
        if not is_within(root_real, candidate):
            return None, PathUnsafe(relative, 'Requested path escapes the media root through a symlink')

        return candidate, None
    except (ValueError, OSError) as e:
        return None, PathUnsafe(relative, 'Unable to resolve requested path: %r' % e)


def relative_to_root(root, path:str) -> str:
    """Inverse of `resolve`: root relative path with forward slashes, '' for the root itself."""
    rel = os.path.relpath(path, canonical_root(root))
    if rel == '.':
        return ''
    return rel.replace(os.sep, '/')


async def stat_path(path:str):
    try:
        return await aiofiles.os.stat(path)
    except (FileNotFoundError, NotADirectoryError) as e:
        raise NotFound('Path vanished: %r' % e) from e


async def stat_file(path:str):
    """stat for a path that must be a regular file."""
    st = await stat_path(path)
    if not stat.S_ISREG(st.st_mode):
        raise NotFound('Not a regular file')
    return st


class ResolvedFile:
    """A contained regular file plus the metadata read while validating it."""
    def __init__(self, path:str, size:int, mtime_ns:int, display_name:str = None):
        self.path = path
        self.size = size
        self.mtime_ns = mtime_ns
        # name as the client asked for it, the canonical path may run through a symlink
        self.display_name = display_name

    @property
    def name(self):
        if self.display_name:
            return self.display_name
        return os.path.basename(self.path)

    @property
    def mtime(self) -> float:
        return self.mtime_ns / 1e9

    @property
    def mtime_millis(self) -> int:
        return self.mtime_ns // 1000000

    @staticmethod
    async def from_path(path:str, display_name:str = None):
        st = await stat_file(path)
        return ResolvedFile(path, st.st_size, st.st_mtime_ns, display_name)

    def __repr__(self):
        return 'ResolvedFile(%r, size=%s, mtime_ns=%s)' % (self.path, self.size, self.mtime_ns)


async def resolve_file(root, relative:str) -> ResolvedFile:
    """resolve() followed by stat, raising PathUnsafe or NotFound."""
    path, err = resolve(root, relative)
    if err is not None:
        raise err
    display_name = os.path.basename(relative.replace('\\', '/').rstrip('/'))
    return await ResolvedFile.from_path(path, display_name or None)
