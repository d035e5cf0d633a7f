
class MediaError(Exception):
	"""Base class for every error that maps to an HTTP status."""
	status_code = 500
	public_message = 'internal server error'

	def __init__(self, message = None):
		self.message = message if message is not None else self.public_message
		super().__init__(self.message)

class PathUnsafe(MediaError):
	status_code = 403
	public_message = 'forbidden'

	def __init__(self, requested, message = "Requested path resolves outside of the media root"):
		self.requested = requested
		super().__init__(message)

class NotFound(MediaError):
	status_code = 404
	public_message = 'not found'

class RangeUnsatisfiable(MediaError):
	status_code = 416
	public_message = 'range not satisfiable'

	def __init__(self, total_size, range_header = None):
		self.total_size = total_size
		self.range_header = range_header
		super().__init__('Range %r cannot be served from %s bytes' % (range_header, total_size))

class IOFailure(MediaError):
	"""Raised when reading fails after the response headers were committed."""
	status_code = 404
	public_message = 'not found'

	def __init__(self, path, offset, innerexception = None):
		self.path = path
		self.offset = offset
		self.innerexception = innerexception
		super().__init__('Read failed on %s at byte offset %s: %r' % (path, offset, innerexception))
