import enum
import ipaddress
from urllib.parse import urlparse

from asymedia.common.sslcontext import MediaSSL


class ServerProto(enum.Enum):
	SERVER_TCP = 1
	SERVER_SSL_TCP = 2


class ServerTarget:
	def __init__(self, ip:str, port:int, protocol:ServerProto = ServerProto.SERVER_TCP, timeout:int = 5, ssl_ctx:MediaSSL = None, hostname:str = None):
		self.hostname = hostname
		self.port = port
		self.protocol = protocol
		self.timeout = timeout
		self.ssl_ctx = ssl_ctx

		try:
			ipaddress.ip_address(ip)
			self.ip = ip
		except ValueError:
			if ip is not None:
				self.hostname = ip
			self.ip = None

		if ip is None and hostname is None:
			raise Exception('Both IP and Hostname can\'t be none!')

	def is_ssl(self):
		return self.protocol == ServerProto.SERVER_SSL_TCP

	def get_ssl_context(self):
		if self.ssl_ctx is None:
			self.ssl_ctx = MediaSSL.get_selfsigned_context(self.get_hostname_or_ip())
		return self.ssl_ctx.get_ssl_context()

	def get_ip_or_hostname(self):
		if self.ip is not None:
			return self.ip
		return self.hostname

	def get_hostname_or_ip(self):
		if self.hostname is not None:
			return self.hostname
		return self.ip

	def get_url(self, port:int = None):
		scheme = 'https' if self.is_ssl() else 'http'
		host = self.get_ip_or_hostname()
		if host in ['0.0.0.0', '', '::']:
			host = 'localhost'
		return '%s://%s:%s' % (scheme, host, port if port is not None else self.port)

	@staticmethod
	def from_url(connection_url:str, port:int = None):
		url_e = urlparse(connection_url)
		if url_e.scheme == 'http':
			protocol = ServerProto.SERVER_TCP
		elif url_e.scheme == 'https':
			protocol = ServerProto.SERVER_SSL_TCP
		else:
			raise ValueError('Unsupported scheme "%s"' % url_e.scheme)

		if url_e.port is None and port is None:
			raise ValueError('Port must be provided!')
		if url_e.port is not None and port is None:
			port = url_e.port

		return ServerTarget(url_e.hostname, port, protocol)

	def __str__(self):
		t = '==== ServerTarget ====\r\n'
		for k in self.__dict__:
			t += '%s: %s\r\n' % (k, self.__dict__[k])
		return t
