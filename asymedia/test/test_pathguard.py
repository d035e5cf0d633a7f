import os
import asyncio

import pytest

from asymedia.errors import PathUnsafe, NotFound
from asymedia.media.pathguard import resolve, resolve_file, is_within, relative_to_root, canonical_root


def test_resolve_plain_file(media_root):
	path, err = resolve(media_root, 'movie.mp4')
	assert err is None
	assert path == os.path.realpath(media_root / 'movie.mp4')


def test_resolve_empty_is_root(media_root):
	path, err = resolve(media_root, '')
	assert err is None
	assert path == canonical_root(media_root)


@pytest.mark.parametrize('relative', [
	'../secret.txt',
	'../../etc/passwd',
	'My Comic/../../secret.txt',
	'..\\secret.txt',
	'Music\\..\\..\\secret.txt',
	'../media-private/secret.txt',
])
def test_traversal_is_unsafe(media_root, relative):
	path, err = resolve(media_root, relative)
	assert path is None
	assert isinstance(err, PathUnsafe)
	assert err.status_code == 403
	assert err.requested == relative


def test_nul_byte_is_unsafe(media_root):
	path, err = resolve(media_root, 'movie.mp4\x00.jpg')
	assert path is None
	assert isinstance(err, PathUnsafe)


def test_dotdot_that_stays_inside(media_root):
	path, err = resolve(media_root, 'Music/../movie.mp4')
	assert err is None
	assert path == os.path.realpath(media_root / 'movie.mp4')


def test_absolute_looking_path_stays_under_root(media_root):
	path, err = resolve(media_root, '/etc/passwd')
	assert err is None
	assert path == os.path.join(canonical_root(media_root), 'etc', 'passwd')
	with pytest.raises(NotFound):
		asyncio.run(resolve_file(media_root, '/etc/passwd'))


def test_sibling_prefix_is_not_within():
	assert is_within('/srv/media', '/srv/media') is True
	assert is_within('/srv/media', '/srv/media/a/b') is True
	assert is_within('/srv/media', '/srv/media-private/secret.txt') is False
	assert is_within('/', '/etc/passwd') is True


@pytest.mark.skipif(not hasattr(os, 'symlink'), reason='symlinks not available')
def test_symlink_escape_is_unsafe(media_root, tmp_path):
	os.symlink(tmp_path / 'secret.txt', media_root / 'escape.mp4')
	os.symlink(tmp_path / 'media-private', media_root / 'private')

	path, err = resolve(media_root, 'escape.mp4')
	assert path is None
	assert isinstance(err, PathUnsafe)

	path, err = resolve(media_root, 'private/secret.txt')
	assert path is None
	assert isinstance(err, PathUnsafe)


@pytest.mark.skipif(not hasattr(os, 'symlink'), reason='symlinks not available')
def test_symlink_inside_root_is_allowed(media_root):
	os.symlink(media_root / 'movie.mp4', media_root / 'alias.mp4')
	path, err = resolve(media_root, 'alias.mp4')
	assert err is None
	assert path == os.path.realpath(media_root / 'movie.mp4')

	file = asyncio.run(resolve_file(media_root, 'alias.mp4'))
	assert file.name == 'alias.mp4'
	assert file.size == 1000


def test_resolve_file_metadata(media_root):
	file = asyncio.run(resolve_file(media_root, 'movie.mp4'))
	st = os.stat(media_root / 'movie.mp4')
	assert file.size == 1000
	assert file.mtime_ns == st.st_mtime_ns
	assert file.mtime_millis == st.st_mtime_ns // 1000000
	assert file.name == 'movie.mp4'


def test_resolve_file_missing_and_directory(media_root):
	with pytest.raises(NotFound):
		asyncio.run(resolve_file(media_root, 'nope.mp4'))
	with pytest.raises(NotFound):
		asyncio.run(resolve_file(media_root, 'My Comic'))
	with pytest.raises(NotFound):
		asyncio.run(resolve_file(media_root, 'movie.mp4/inner.mp4'))


def test_resolve_file_unsafe_raises(media_root):
	with pytest.raises(PathUnsafe):
		asyncio.run(resolve_file(media_root, '../secret.txt'))


def test_relative_to_root(media_root):
	root = canonical_root(media_root)
	assert relative_to_root(media_root, root) == ''
	assert relative_to_root(media_root, os.path.join(root, 'My Comic', '1.jpg')) == 'My Comic/1.jpg'
