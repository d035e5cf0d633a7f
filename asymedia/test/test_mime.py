import pytest

from asymedia.media.mime import get_extension, get_mime_type, classify, MediaKind, DEFAULT_MIME_TYPE, \
	image_extensions, audio_extensions, is_image_extension, is_audio_extension, is_image_mime


@pytest.mark.parametrize('name, mime_type', [
	('movie.mp4', 'video/mp4'),
	('MOVIE.MKV', 'video/x-matroska'),
	('stream.ts', 'video/MP2T'),
	('page.jpeg', 'image/jpeg'),
	('song.m4a', 'audio/mp4'),
	('song.flac', 'audio/flac'),
	('archive.tar.gz', DEFAULT_MIME_TYPE),
	('README', DEFAULT_MIME_TYPE),
	('.hidden', DEFAULT_MIME_TYPE),
])
def test_get_mime_type(name, mime_type):
	assert get_mime_type(name) == mime_type


def test_get_extension():
	assert get_extension('a/b/Cover.PNG') == 'png'
	assert get_extension('noext') == ''


def test_classify():
	assert classify('a.webm') == MediaKind.VIDEO
	assert classify('a.gif') == MediaKind.IMAGE
	assert classify('a.mp3') == MediaKind.AUDIO
	assert classify('a.txt') == MediaKind.OTHER


def test_extension_groups():
	assert 'jpg' in image_extensions()
	assert 'mp4' not in image_extensions()
	assert 'ogg' in audio_extensions()
	assert is_image_extension('.PNG')
	assert not is_image_extension('')
	assert is_audio_extension('wav')
	assert not is_audio_extension('mp4')
	assert is_image_mime('image/webp')
	assert not is_image_mime(None)
