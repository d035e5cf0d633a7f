import asyncio

import aiofiles

from asymedia.common.target import ServerTarget
from asymedia.http.httpserver import HTTPServer
from asymedia.media import handler as media_handler
from asymedia.media.handler import MediaHandler


class DroppingConnection:
	"""
	Feeds one raw request to the server, then raises ConnectionResetError
	on the `fail_on_write`-th write (1 based, None never fails).
	"""
	def __init__(self, raw, fail_on_write=None):
		self.pending = [raw]
		self.fail_on_write = fail_on_write
		self.writes = 0
		self.buffer = b''
		self.aborted = False
		self.closed = False

	async def read_one(self):
		if self.pending:
			return self.pending.pop(0)
		return b''

	async def write(self, data):
		self.writes += 1
		if self.fail_on_write is not None and self.writes >= self.fail_on_write:
			raise ConnectionResetError('peer went away')
		self.buffer += data

	async def close(self):
		self.closed = True

	def abort(self):
		self.aborted = True

	def get_peer(self):
		return '127.0.0.1:0'


class TrackedFile:
	"""Wraps an open aiofiles handle, optionally pretending it ends after `limit` bytes."""
	def __init__(self, fh, limit=None):
		self.fh = fh
		self.limit = limit
		self.served = 0
		self.closed = False

	async def seek(self, offset):
		return await self.fh.seek(offset)

	async def read(self, size):
		if self.limit is not None:
			size = max(0, min(size, self.limit - self.served))
			if size == 0:
				return b''
		data = await self.fh.read(size)
		self.served += len(data)
		return data

	async def close(self):
		self.closed = True
		await self.fh.close()


def track_opens(monkeypatch, limit=None):
	opened = []
	real_open = aiofiles.open

	async def tracked_open(path, mode='r'):
		fh = TrackedFile(await real_open(path, mode), limit)
		opened.append(fh)
		return fh

	monkeypatch.setattr(media_handler.aiofiles, 'open', tracked_open)
	return opened


def serve_one(media_root, conn):
	async def run():
		server = HTTPServer(lambda: MediaHandler(media_root, chunk_size=100), ServerTarget('127.0.0.1', 0))
		await server._HTTPServer__handle_connection(0, conn)

	asyncio.run(run())


GET_MOVIE = b'GET /video/movie.mp4 HTTP/1.1\r\nHost: localhost\r\n\r\n'


def test_client_disconnect_closes_file(media_root, monkeypatch):
	opened = track_opens(monkeypatch)
	# the status line is write 1, the first body chunk is write 2
	conn = DroppingConnection(GET_MOVIE, fail_on_write=2)
	serve_one(media_root, conn)

	assert len(opened) == 1
	assert opened[0].closed is True
	assert conn.aborted is True
	assert conn.buffer.startswith(b'HTTP/1.1 200')


def test_file_shrinking_mid_stream_aborts(media_root, monkeypatch):
	opened = track_opens(monkeypatch, limit=300)
	conn = DroppingConnection(GET_MOVIE)
	serve_one(media_root, conn)

	assert len(opened) == 1
	assert opened[0].closed is True
	assert conn.aborted is True
	assert conn.closed is False
	# headers plus the 300 bytes that could be read, no second response
	assert conn.buffer.count(b'HTTP/1.1 ') == 1
	head, body = conn.buffer.split(b'\r\n\r\n', 1)
	assert b'content-length: 1000' in head.lower()
	assert len(body) == 300


def test_complete_response_closes_cleanly(media_root, monkeypatch):
	opened = track_opens(monkeypatch)
	conn = DroppingConnection(GET_MOVIE)
	serve_one(media_root, conn)

	assert opened[0].closed is True
	assert conn.aborted is False
	assert conn.closed is True
	assert conn.buffer.count(b'HTTP/1.1 200') == 1
