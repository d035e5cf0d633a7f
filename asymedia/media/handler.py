import os
import stat
import urllib.parse

import h11
import aiofiles

from asymedia import logger
from asymedia.errors import MediaError, PathUnsafe, NotFound, IOFailure
from asymedia.http.httpserver import HTTPServerHandler
from asymedia.media.mime import MediaKind, classify
from asymedia.media.pathguard import resolve, resolve_file, relative_to_root, stat_path, canonical_root
from asymedia.media.listing import ListingCache, list_folder, sibling_media
from asymedia.media.rangestream import plan, stream_window, NotModified, Unsatisfiable, \
    DEFAULT_CHUNK_SIZE, IMAGE_CACHE_CONTROL, DEFAULT_CACHE_CONTROL
from asymedia.media import pages


def _encode_headers(headers):
    return [(name, value.encode('latin-1') if isinstance(value, str) else value) for name, value in headers]


class MediaHandler(HTTPServerHandler):
    """
    Serves the media root over HTTP.

    Routes:
    - /               listing of the media root
    - /folder/<path>  listing of a sub-folder
    - /video/<path>   raw file bytes with Range and conditional request support
    - /watch/<path>   video player page
    - /comic/<path>   image viewer for a folder or an image and its siblings
    - /audio/<path>   audio playlist for a folder or a track and its siblings
    """

    ROUTES = [
        ('/folder/', '_serve_folder'),
        ('/video/', '_serve_media'),
        ('/watch/', '_serve_watch'),
        ('/comic/', '_serve_comic'),
        ('/audio/', '_serve_audio'),
    ]

    def __init__(self, media_root, listing_cache:ListingCache = None, chunk_size:int = DEFAULT_CHUNK_SIZE,
                 image_cache_control:str = IMAGE_CACHE_CONTROL, default_cache_control:str = DEFAULT_CACHE_CONTROL,
                 enable_cors:bool = True):
        super().__init__(enable_cors=enable_cors)
        self.media_root = canonical_root(media_root)
        self.root_name = os.path.basename(self.media_root.rstrip(os.sep)) or self.media_root
        self.listing_cache = listing_cache
        self.chunk_size = chunk_size
        self.image_cache_control = image_cache_control
        self.default_cache_control = default_cache_control
        self._head_only = False

    @classmethod
    def route(cls, target:bytes):
        """
        Maps a request target to (handler method name, decoded relative path).
        Routing happens on the still encoded path, the remainder is decoded once.
        """
        path = urllib.parse.urlsplit(target.decode('latin-1')).path
        if path in ('', '/'):
            return '_serve_index', ''
        for prefix, name in cls.ROUTES:
            if path.startswith(prefix):
                return name, urllib.parse.unquote(path[len(prefix):])
        return None, None

    async def do_GET(self, event):
        await self._dispatch(event, head_only=False)

    async def do_HEAD(self, event):
        await self._dispatch(event, head_only=True)

    async def _dispatch(self, event, head_only):
        self._head_only = head_only
        name, relative = self.route(event.target)
        try:
            if name is None:
                raise NotFound('No route for target')
            await getattr(self, name)(event, relative)
        except MediaError as e:
            if self._wrapper.response_started():
                raise
            if isinstance(e, PathUnsafe):
                logger.warning('[HTTP] Blocked path outside media root: %r' % e.requested)
            else:
                logger.debug('[HTTP] %s: %s' % (type(e).__name__, e))
            await self._serve_error(e.status_code, e.public_message)
        except OSError as e:
            if self._wrapper.response_started():
                raise
            logger.error('[HTTP] Error serving %r: %r' % (relative, e))
            await self._serve_error(500, 'internal server error')

    async def _serve_error(self, status_code, message):
        await self.send_simple(status_code, pages.render_error_page(status_code, message), head_only=self._head_only)

    async def _serve_html(self, body:str):
        await self.send_simple(200, body, head_only=self._head_only)

    async def _redirect(self, prefix:str, relative:str):
        location = pages.media_url(prefix, relative)
        await self.send_simple(302, b'', extra_headers=[("Location", location.encode('ascii'))], head_only=self._head_only)

    def _resolve(self, relative):
        path, err = resolve(self.media_root, relative)
        if err is not None:
            raise err
        return path

    async def _send_data(self, chunk):
        await self._wrapper.send(h11.Data(data=chunk))

    ### streaming

    async def _serve_media(self, event, relative):
        if not relative:
            raise NotFound('Empty media path')
        file = await resolve_file(self.media_root, relative)
        stream_plan = plan(
            file,
            range_header=self.get_header(event, 'range'),
            if_none_match=self.get_header(event, 'if-none-match'),
            if_modified_since=self.get_header(event, 'if-modified-since'),
            image_cache_control=self.image_cache_control,
            default_cache_control=self.default_cache_control,
        )
        logger.debug('[STREAM] %s -> %r' % (relative, stream_plan))

        if isinstance(stream_plan, Unsatisfiable):
            return await self.send_simple(
                416,
                b'range not satisfiable',
                content_type='text/plain; charset=utf-8',
                extra_headers=_encode_headers(stream_plan.headers()),
                head_only=self._head_only,
                compress=False,
            )

        headers = self.basic_headers() + _encode_headers(stream_plan.headers())
        if isinstance(stream_plan, NotModified):
            await self._wrapper.send(h11.Response(status_code=304, headers=headers))
            await self._wrapper.send(h11.EndOfMessage())
            return

        # opened before the status line goes out so a vanished file is still a clean 404
        try:
            fh = await aiofiles.open(file.path, 'rb')
        except OSError as e:
            raise NotFound('Unable to open file: %r' % e) from e

        try:
            await self._wrapper.send(h11.Response(status_code=stream_plan.status_code, headers=headers))
            if self._head_only is False and stream_plan.length > 0:
                try:
                    await stream_window(fh, stream_plan.start, stream_plan.length, self._send_data, self.chunk_size, file.path)
                except IOFailure as e:
                    logger.error('[STREAM] Aborting response for %s at byte offset %s: %r' % (e.path, e.offset, e.innerexception))
                    raise ConnectionAbortedError('Response body could not be completed') from e
            await self._wrapper.send(h11.EndOfMessage())
        finally:
            await fh.close()

    ### pages

    async def _serve_index(self, event, relative):
        await self._serve_listing('')

    async def _serve_folder(self, event, relative):
        await self._serve_listing(relative)

    async def _serve_listing(self, relative):
        folder_path = self._resolve(relative)
        key = relative_to_root(self.media_root, folder_path)
        body = None
        if self.listing_cache is not None:
            body = self.listing_cache.get(key)
            if body is not None:
                logger.debug('[LISTING] Cache hit for %s' % (key or '/'))

        if body is None:
            st = await stat_path(folder_path)
            if not stat.S_ISDIR(st.st_mode):
                raise NotFound('Not a folder')
            listing = await list_folder(folder_path, key)
            body = pages.render_listing_page(listing, self.root_name)
            if self.listing_cache is not None:
                self.listing_cache.put(key, body)

        await self._serve_html(body)

    async def _serve_watch(self, event, relative):
        path = self._resolve(relative)
        st = await stat_path(path)
        rel = relative_to_root(self.media_root, path)
        if stat.S_ISDIR(st.st_mode):
            return await self._redirect('/folder/', rel)

        kind = classify(path)
        if kind == MediaKind.IMAGE:
            return await self._redirect('/comic/', rel)
        if kind == MediaKind.AUDIO:
            return await self._redirect('/audio/', rel)

        await self._serve_html(pages.render_player_page(rel, os.path.basename(path)))

    async def _serve_comic(self, event, relative):
        await self._serve_gallery(relative, MediaKind.IMAGE, pages.render_comic_page)

    async def _serve_audio(self, event, relative):
        await self._serve_gallery(relative, MediaKind.AUDIO, pages.render_audio_page)

    async def _serve_gallery(self, relative, kind:MediaKind, render):
        """
        A folder shows every file of `kind` in it, a single file shows its
        siblings starting at that file. Files of another kind go to /video/.
        """
        path = self._resolve(relative)
        st = await stat_path(path)
        rel = relative_to_root(self.media_root, path)

        if stat.S_ISDIR(st.st_mode):
            items, start_index = await sibling_media(path, rel, kind)
            title = os.path.basename(path) if rel else self.root_name
            parent = rel
        else:
            if classify(path) != kind:
                return await self._redirect('/video/', rel)
            directory = os.path.dirname(path)
            parent = relative_to_root(self.media_root, directory)
            items, start_index = await sibling_media(directory, parent, kind, current=os.path.basename(path))
            title = os.path.basename(path)

        if not items:
            raise NotFound('No %s files' % kind.value)

        logger.debug('[HTTP] %s page for %s with %s items' % (kind.value, rel or '/', len(items)))
        await self._serve_html(render(items, title, start_index, parent))
