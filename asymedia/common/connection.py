import asyncio
from asymedia.common.packetizer import Packetizer


class MediaConnection:
	def __init__(self, reader:asyncio.StreamReader, writer:asyncio.StreamWriter, packetizer:Packetizer):
		self.reader = reader
		self.writer = writer
		self.packetizer = packetizer
		self.closing = False

	async def __aenter__(self):
		return self

	async def __aexit__(self, exc_type, exc, tb):
		await self.close()

	def get_extra_info(self, name, default=None):
		if self.writer is not None:
			return self.writer.get_extra_info(name, default)
		return default

	def get_peer(self):
		peer = self.get_extra_info('peername')
		if peer is None:
			return '?:?'
		return '%s:%s' % (peer[0], peer[1])

	def is_closing(self):
		if self.closing is True:
			return True
		return self.writer is None or self.writer.is_closing()

	async def close(self):
		self.closing = True
		if self.writer is not None:
			self.writer.close()
			try:
				await self.writer.wait_closed()
			except (ConnectionError, OSError):
				pass

	def abort(self):
		"""Drops the connection without flushing, used once a response can't be completed."""
		self.closing = True
		if self.writer is not None:
			self.writer.transport.abort()

	async def write(self, data):
		# drain() suspends while the peer's receive window is full
		if self.is_closing():
			raise ConnectionResetError('Connection is closed')
		async for packet in self.packetizer.data_out(data):
			self.writer.write(packet)
			await self.writer.drain()

	async def read_one(self):
		async for packet in self.read():
			return packet
		return b''

	async def read(self):
		while self.closing is False:
			data = await self.reader.read(self.packetizer.buffer_size)
			if data == b'':
				break
			async for result in self.packetizer.data_in(data):
				yield result
