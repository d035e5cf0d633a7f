import logging

import h11
import pytest

from asymedia import logger
from asymedia.http.httpserver import HTTPConnectionWrapper

logger.setLevel(logging.DEBUG)

MOVIE_SIZE = 1000


def movie_bytes():
	return bytes(i % 251 for i in range(MOVIE_SIZE))


@pytest.fixture
def media_root(tmp_path):
	"""
	tmp_path/
	  media/                   <- the served root
	    movie.mp4              1000 bytes
	    notes.txt
	    My Comic/1.jpg 2.jpg 10.jpg info.txt
	    Music/a.mp3 b.mp3
	    sub dir/clip.mkv
	    empty/
	  media-private/secret.txt
	  secret.txt
	"""
	root = tmp_path / 'media'
	root.mkdir()
	(root / 'movie.mp4').write_bytes(movie_bytes())
	(root / 'notes.txt').write_text('not media')

	comic = root / 'My Comic'
	comic.mkdir()
	for name in ['1.jpg', '2.jpg', '10.jpg']:
		(comic / name).write_bytes(b'\xff\xd8\xff' + name.encode())
	(comic / 'info.txt').write_text('scanned by someone')

	music = root / 'Music'
	music.mkdir()
	(music / 'a.mp3').write_bytes(b'ID3a')
	(music / 'b.mp3').write_bytes(b'ID3b')

	sub = root / 'sub dir'
	sub.mkdir()
	(sub / 'clip.mkv').write_bytes(b'\x1a\x45\xdf\xa3')

	(root / 'empty').mkdir()

	private = tmp_path / 'media-private'
	private.mkdir()
	(private / 'secret.txt').write_text('private')
	(tmp_path / 'secret.txt').write_text('top secret')
	return root


class RecordingStream:
	"""Stands in for MediaConnection, keeps everything written to it."""
	def __init__(self):
		self.buffer = b''
		self.closed = False

	async def write(self, data):
		self.buffer += data

	async def close(self):
		self.closed = True

	def get_peer(self):
		return '127.0.0.1:0'


class Exchange:
	def __init__(self, response, body, wrapper):
		self.response = response
		self.body = body
		self.wrapper = wrapper

	@property
	def status(self):
		return self.response.status_code

	@property
	def headers(self):
		return {k.decode('latin-1'): v.decode('latin-1') for k, v in self.response.headers}


async def exchange(handler, method, target, headers=None):
	"""
	Runs one request through `handler` with a real h11 connection on both
	sides and returns the parsed response.
	"""
	client = h11.Connection(h11.CLIENT)
	req_headers = [('Host', 'localhost'), ('User-Agent', 'pytest')] + list(headers or [])
	raw = client.send(h11.Request(method=method, target=target, headers=req_headers))
	raw += client.send(h11.EndOfMessage())

	stream = RecordingStream()
	wrapper = HTTPConnectionWrapper(0, stream)
	wrapper.conn.receive_data(raw)
	request = wrapper.conn.next_event()
	assert type(request) is h11.Request
	await handler._process_request(wrapper, request)

	client.receive_data(stream.buffer)
	response = None
	body = b''
	while True:
		event = client.next_event()
		if type(event) is h11.Response:
			response = event
		elif type(event) is h11.Data:
			body += event.data
		elif type(event) is h11.EndOfMessage:
			break
		elif event is h11.NEED_DATA:
			raise AssertionError('Incomplete response: %r' % stream.buffer)
	return Exchange(response, body, wrapper)
