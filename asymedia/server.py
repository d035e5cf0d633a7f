import asyncio
import copy

from asymedia import logger
from asymedia.common.target import ServerTarget, ServerProto
from asymedia.common.packetizer import Packetizer
from asymedia.common.connection import MediaConnection


class MediaSocketServer:
	def __init__(self, target:ServerTarget, packetizer:Packetizer):
		self.target = target
		self.packetizer = packetizer
		self.connection_queue = asyncio.Queue()
		self.listening_evt = asyncio.Event()
		self.bound_port = None
		self.server = None

	async def __handle_connection(self, reader, writer):
		packetizer = copy.deepcopy(self.packetizer)
		connection = MediaConnection(reader, writer, packetizer)
		await self.connection_queue.put(connection)

	async def start(self):
		ssl_ctx = None
		if self.target.protocol == ServerProto.SERVER_SSL_TCP:
			ssl_ctx = self.target.get_ssl_context()
		elif self.target.protocol != ServerProto.SERVER_TCP:
			raise Exception('Unknown protocol "%s"' % self.target.protocol)

		self.server = await asyncio.start_server(
			self.__handle_connection,
			self.target.get_ip_or_hostname(),
			self.target.port,
			ssl = ssl_ctx,
			ssl_handshake_timeout = self.target.timeout if ssl_ctx is not None else None,
		)
		self.bound_port = self.server.sockets[0].getsockname()[1]
		logger.debug('[SERVER] Listening on %s:%s' % (self.target.get_ip_or_hostname(), self.bound_port))
		self.listening_evt.set()

	def close(self):
		if self.server is not None:
			self.server.close()

	async def serve(self):
		try:
			await self.start()
			while self.server.is_serving():
				connection = await self.connection_queue.get()
				yield connection
		finally:
			self.close()
