
class Packetizer:
	"""Identity framing. HTTP parsing happens in h11, this only moves raw chunks."""
	def __init__(self, buffer_size = 65535):
		self.buffer_size = buffer_size

	async def data_out(self, data):
		yield data

	async def data_in(self, data):
		yield data
