"""
Byte range planning and streaming for media files.

`plan` decides which response a request gets (200, 206, 304 or 416) from
the file's current metadata and the request's Range / conditional headers.
`stream_window` then copies the selected byte window to the client in
bounded chunks.
"""

import re
import datetime
import email.utils
import urllib.parse

from asymedia.errors import RangeUnsatisfiable, IOFailure
from asymedia.media.mime import get_mime_type, is_image_mime
from asymedia.media.pathguard import ResolvedFile

DEFAULT_CHUNK_SIZE = 512 * 1024
IMAGE_CACHE_CONTROL = 'public, max-age=86400'
DEFAULT_CACHE_CONTROL = 'public, max-age=60'

# single range only, 'bytes=0-10,20-30' does not match
RANGE_RE = re.compile(r'^bytes=(\d*)-(\d*)$', re.IGNORECASE)


def weak_etag(size:int, mtime_millis:int) -> str:
    return 'W/"%s-%s"' % (size, mtime_millis)


def http_date(timestamp:float) -> str:
    dt = datetime.datetime.fromtimestamp(int(timestamp), tz=datetime.timezone.utc)
    return email.utils.format_datetime(dt, usegmt=True)


def parse_http_date(value):
    """Returns the POSIX timestamp of an HTTP date, None if it can't be parsed."""
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        dt = value
    else:
        try:
            dt = email.utils.parsedate_to_datetime(value.strip())
        except (TypeError, ValueError, IndexError):
            return None
        if dt is None:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt.timestamp()


class CacheValidators:
    def __init__(self, etag:str, last_modified:str, last_modified_ts:int):
        self.etag = etag
        self.last_modified = last_modified
        # Last-Modified only carries whole seconds
        self.last_modified_ts = last_modified_ts

    @staticmethod
    def from_file(file:ResolvedFile):
        return CacheValidators(
            weak_etag(file.size, file.mtime_millis),
            http_date(file.mtime),
            int(file.mtime),
        )


class ByteRange:
    """Inclusive [start, end] window into a file."""
    def __init__(self, start:int, end:int):
        self.start = start
        self.end = end

    @property
    def length(self):
        return self.end - self.start + 1

    def content_range(self, total_size:int) -> str:
        return 'bytes %s-%s/%s' % (self.start, self.end, total_size)

    def __eq__(self, other):
        return isinstance(other, ByteRange) and (self.start, self.end) == (other.start, other.end)

    def __repr__(self):
        return 'ByteRange(%s, %s)' % (self.start, self.end)


def parse_range(range_header:str, total_size:int) -> ByteRange:
    """
    Parses a single range `bytes=<start>-<end>` against a file of `total_size`.

    Raises RangeUnsatisfiable for anything that is malformed, multi-range or
    out of bounds. An end beyond EOF is clamped to the last byte.
    """
    m = RANGE_RE.match(range_header.strip())
    if m is None:
        raise RangeUnsatisfiable(total_size, range_header)

    start_s, end_s = m.group(1), m.group(2)
    if start_s == '' and end_s == '':
        raise RangeUnsatisfiable(total_size, range_header)

    if start_s == '':
        # suffix form: the last N bytes
        suffix = int(end_s)
        if suffix == 0 or total_size == 0:
            raise RangeUnsatisfiable(total_size, range_header)
        start = max(total_size - suffix, 0)
        end = total_size - 1
        return ByteRange(start, end)

    start = int(start_s)
    end = int(end_s) if end_s != '' else total_size - 1
    if start > end or start >= total_size:
        raise RangeUnsatisfiable(total_size, range_header)
    end = min(end, total_size - 1)
    return ByteRange(start, end)


def make_content_disposition(filename:str) -> str:
    """inline disposition with an ASCII fallback and an RFC 5987 UTF-8 name"""
    if not filename:
        return 'inline'
    sanitized = re.sub(r'[\r\n"\\]', '', filename)
    if not sanitized:
        return 'inline'
    fallback = re.sub(r'[^\x20-\x7e]', '_', sanitized)
    encoded = urllib.parse.quote(sanitized, safe="!#$&+-.^_`|~", encoding='utf-8')
    return "inline; filename=\"%s\"; filename*=UTF-8''%s" % (fallback, encoded)


def cache_control_for(content_type:str, image_cache_control=IMAGE_CACHE_CONTROL, default_cache_control=DEFAULT_CACHE_CONTROL) -> str:
    if is_image_mime(content_type):
        return image_cache_control
    return default_cache_control


class StreamPlan:
    status_code = None
    has_body = False

    def __init__(self, total_size:int, validators:CacheValidators = None, cache_control:str = None):
        self.total_size = total_size
        self.validators = validators
        self.cache_control = cache_control

    @property
    def etag(self):
        return self.validators.etag

    @property
    def last_modified(self):
        return self.validators.last_modified

    def _validator_headers(self):
        return [
            ("ETag", self.etag),
            ("Last-Modified", self.last_modified),
            ("Cache-Control", self.cache_control),
        ]

    def headers(self):
        return []

    def __repr__(self):
        return '%s(total_size=%s)' % (type(self).__name__, self.total_size)


class NotModified(StreamPlan):
    status_code = 304

    def headers(self):
        return self._validator_headers()


class Full(StreamPlan):
    status_code = 200
    has_body = True

    def __init__(self, total_size, validators, cache_control, content_type, content_disposition):
        super().__init__(total_size, validators, cache_control)
        self.content_type = content_type
        self.content_disposition = content_disposition

    @property
    def start(self):
        return 0

    @property
    def length(self):
        return self.total_size

    def headers(self):
        return [
            ("Content-Length", str(self.length)),
            ("Content-Type", self.content_type),
            ("Accept-Ranges", "bytes"),
        ] + self._validator_headers() + [
            ("Content-Disposition", self.content_disposition),
        ]


class Partial(Full):
    status_code = 206

    def __init__(self, start, end, total_size, validators, cache_control, content_type, content_disposition):
        super().__init__(total_size, validators, cache_control, content_type, content_disposition)
        self.byte_range = ByteRange(start, end)

    @property
    def start(self):
        return self.byte_range.start

    @property
    def end(self):
        return self.byte_range.end

    @property
    def length(self):
        return self.byte_range.length

    def headers(self):
        return super().headers() + [
            ("Content-Range", self.byte_range.content_range(self.total_size)),
        ]

    def __repr__(self):
        return 'Partial(%s-%s/%s)' % (self.start, self.end, self.total_size)


class Unsatisfiable(StreamPlan):
    status_code = 416

    def headers(self):
        return [
            ("Content-Range", "bytes */%s" % self.total_size),
        ]


def plan(file:ResolvedFile, range_header:str = None, if_none_match:str = None, if_modified_since = None,
         image_cache_control:str = IMAGE_CACHE_CONTROL, default_cache_control:str = DEFAULT_CACHE_CONTROL) -> StreamPlan:
    """
    Decides the response for `file`.

    Conditional headers are only honored when there is no Range header; a
    range request is always evaluated as a range.
    """
    validators = CacheValidators.from_file(file)
    content_type = get_mime_type(file.name)
    cache_control = cache_control_for(content_type, image_cache_control, default_cache_control)

    if not range_header:
        if if_none_match is not None and if_none_match.strip() == validators.etag:
            return NotModified(file.size, validators, cache_control)
        ims = parse_http_date(if_modified_since)
        if ims is not None and ims >= validators.last_modified_ts:
            return NotModified(file.size, validators, cache_control)

    content_disposition = make_content_disposition(file.name)

    if range_header:
        try:
            byte_range = parse_range(range_header, file.size)
        except RangeUnsatisfiable:
            return Unsatisfiable(file.size, validators, cache_control)
        return Partial(byte_range.start, byte_range.end, file.size, validators, cache_control, content_type, content_disposition)

    return Full(file.size, validators, cache_control, content_type, content_disposition)


async def stream_window(fh, start:int, length:int, send, chunk_size:int = DEFAULT_CHUNK_SIZE, path:str = None) -> int:
    """
    Copies `length` bytes starting at `start` from the open file `fh` to
    `send`, one chunk at a time. The next chunk is only read after `send`
    returned, so a slow client throttles the disk reads.

    Read errors and a file that got shorter raise IOFailure. Errors raised by
    `send` are passed through untouched.
    """
    offset = start
    remaining = length
    try:
        await fh.seek(start)
    except OSError as e:
        raise IOFailure(path, offset, e) from e

    while remaining > 0:
        try:
            chunk = await fh.read(min(chunk_size, remaining))
        except OSError as e:
            raise IOFailure(path, offset, e) from e
        if not chunk:
            raise IOFailure(path, offset, EOFError('File ended %s bytes early' % remaining))

        await send(chunk)
        offset += len(chunk)
        remaining -= len(chunk)

    return offset - start
