import ssl
import logging

import pytest

from asymedia.config import MediaServerSettings
from asymedia.common.target import ServerTarget, ServerProto
from asymedia.common.sslcontext import MediaSSL, generate_selfsigned_cert


def test_settings_overrides(tmp_path):
	config = MediaServerSettings(MEDIA_ROOT=str(tmp_path), PORT=8080, HOST=None, ENABLE_CORS=False)
	assert config.MEDIA_ROOT == tmp_path.resolve()
	assert config.PORT == 8080
	assert config.HOST == MediaServerSettings.HOST
	assert config.ENABLE_CORS is False
	assert 'PORT: 8080' in str(config)


def test_settings_unknown_key():
	with pytest.raises(AttributeError):
		MediaServerSettings(NOT_A_SETTING=1)


def test_settings_ensure_dirs(tmp_path):
	config = MediaServerSettings(MEDIA_ROOT=tmp_path / 'new' / 'media')
	config.ensure_dirs()
	assert config.MEDIA_ROOT.is_dir()


def test_target_from_url():
	target = ServerTarget.from_url('https://localhost:8443')
	assert target.protocol == ServerProto.SERVER_SSL_TCP
	assert target.is_ssl()
	assert target.port == 8443
	assert target.get_hostname_or_ip() == 'localhost'

	target = ServerTarget.from_url('http://10.0.0.5', port=3000)
	assert target.ip == '10.0.0.5'
	assert target.get_url() == 'http://10.0.0.5:3000'

	with pytest.raises(ValueError):
		ServerTarget.from_url('ftp://localhost:21')
	with pytest.raises(ValueError):
		ServerTarget.from_url('http://localhost')


def test_target_url_for_wildcard_bind():
	target = ServerTarget('0.0.0.0', 3000)
	assert target.get_url() == 'http://localhost:3000'
	assert target.get_url(41234) == 'http://localhost:41234'


def test_selfsigned_context(tmp_path):
	cert_pem, key_pem, err = generate_selfsigned_cert('localhost')
	assert err is None
	assert cert_pem.startswith(b'-----BEGIN CERTIFICATE-----')
	assert b'PRIVATE KEY' in key_pem

	media_ssl = MediaSSL.get_selfsigned_context('localhost', cache_dir=str(tmp_path))
	ctx = media_ssl.get_ssl_context()
	assert isinstance(ctx, ssl.SSLContext)
	assert (tmp_path / 'localhost_cert.pem').is_file()


@pytest.mark.parametrize('name, level', [
	('debug', logging.DEBUG),
	('info', logging.INFO),
	('warn', logging.WARNING),
	('WARNING', logging.WARNING),
	(' error ', logging.ERROR),
])
def test_settings_log_level(name, level):
	assert MediaServerSettings(LOG_LEVEL=name).get_log_level() == level


def test_settings_log_level_unknown():
	config = MediaServerSettings(LOG_LEVEL='chatty')
	with pytest.raises(ValueError):
		config.get_log_level()
	assert 'LOG_LEVEL: chatty' in str(config)
