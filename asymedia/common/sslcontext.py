import os
import ssl
import uuid
import datetime
import tempfile

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from asymedia import logger


def generate_selfsigned_cert(hostname = 'localhost', key_exp = 65537, key_size = 2048):
	"""Returns (cert_pem, key_pem, err) for a one year self-signed server certificate."""
	try:
		logger.debug('[SSL] Generating self-signed certificate for %s' % hostname)
		one_day = datetime.timedelta(1, 0, 0)
		one_year = datetime.timedelta(365, 0, 0)
		now = datetime.datetime.now(datetime.timezone.utc)
		private_key = rsa.generate_private_key(
			public_exponent=key_exp,
			key_size=key_size,
		)
		name = x509.Name([
			x509.NameAttribute(NameOID.COMMON_NAME, hostname),
			x509.NameAttribute(NameOID.ORGANIZATION_NAME, 'asymedia'),
		])
		builder = x509.CertificateBuilder()
		builder = builder.subject_name(name)
		builder = builder.issuer_name(name)
		builder = builder.not_valid_before(now - one_day)
		builder = builder.not_valid_after(now + one_year)
		builder = builder.serial_number(int(uuid.uuid4()))
		builder = builder.public_key(private_key.public_key())
		builder = builder.add_extension(
			x509.SubjectAlternativeName([x509.DNSName(hostname)]), critical=False,
		)
		builder = builder.add_extension(
			x509.BasicConstraints(ca=False, path_length=None), critical=True,
		)
		certificate = builder.sign(private_key=private_key, algorithm=hashes.SHA256())

		cert_pem = certificate.public_bytes(encoding=serialization.Encoding.PEM)
		key_pem = private_key.private_bytes(
			encoding=serialization.Encoding.PEM,
			format=serialization.PrivateFormat.TraditionalOpenSSL,
			encryption_algorithm=serialization.NoEncryption()
		)
		return cert_pem, key_pem, None
	except Exception as e:
		logger.exception('generate_selfsigned_cert')
		return None, None, e


class MediaSSL:
	"""Keeps the certificate material around so a fresh SSLContext can be built at any time."""
	def __init__(self, certfile:str = None, keyfile:str = None, password:str = None):
		self.certfile = certfile
		self.keyfile = keyfile
		self.password = password

	@staticmethod
	def get_selfsigned_context(hostname = 'localhost', cache_dir = None):
		if cache_dir is None:
			cache_dir = os.path.join(tempfile.gettempdir(), 'asymedia-certstore')
		os.makedirs(cache_dir, exist_ok=True)

		certfile = os.path.join(cache_dir, '%s_cert.pem' % hostname)
		keyfile = os.path.join(cache_dir, '%s_key.pem' % hostname)
		if not (os.path.isfile(certfile) and os.path.isfile(keyfile)):
			cert_pem, key_pem, err = generate_selfsigned_cert(hostname)
			if err is not None:
				raise err
			with open(certfile, 'wb') as f:
				f.write(cert_pem)
			with open(keyfile, 'wb') as f:
				f.write(key_pem)

		return MediaSSL(certfile, keyfile)

	def get_ssl_context(self):
		ssl_ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
		ssl_ctx.load_cert_chain(certfile=self.certfile, keyfile=self.keyfile, password=self.password)
		return ssl_ctx

	def __str__(self):
		return 'MediaSSL(certfile=%s, keyfile=%s)' % (self.certfile, self.keyfile)
