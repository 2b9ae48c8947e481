from __future__ import annotations

import os

import pytest
from fastapi import HTTPException

from fileman.routers import files
from fileman.services import listing
from fileman.services.file_ops import FileOps


@pytest.mark.parametrize(
    ('size', 'expected'),
    [
        (0, '0 B'),
        (10, '10 B'),
        (1023, '1023 B'),
        (1024, '1.0 KB'),
        (1536, '1.5 KB'),
        (1048576, '1.0 MB'),
        (5 * 1024**3, '5.0 GB'),
        (1024**4, '1.0 TB'),
        (1024**6, '1.0 EB'),
    ],
)
def test_format_size_uses_binary_units(size, expected):
    assert listing.format_size(size) == expected


def _populate(root):
    sub = root / 'sub'
    sub.mkdir()
    (sub / 'a.txt').write_bytes(b'0123456789')
    (sub / 'b').mkdir()
    return sub


def test_list_scenario_directory_then_file(tmp_path):
    _populate(tmp_path)
    ops = FileOps(str(tmp_path))

    data = files.list_files(path='/sub', ops=ops).model_dump(by_alias=True)

    assert data['currentPath'] == '/sub'
    assert data['parentPath'] == '/'
    assert [f['name'] for f in data['files']] == ['b', 'a.txt']
    b, a = data['files']
    assert b['isDir'] is True
    assert b['path'] == '/sub/b'
    assert a['isDir'] is False
    assert a['size'] == 10
    assert a['sizeFormatted'] == '10 B'
    assert a['path'] == '/sub/a.txt'
    assert a['createTime'] == a['modTime']


def test_list_root_has_empty_parent(tmp_path):
    _populate(tmp_path)

    data = FileOps(str(tmp_path)).list_dir('/')

    assert data.current_path == '/'
    assert data.parent_path == ''
    assert [f.path for f in data.files] == ['/sub']


def test_list_sorts_directories_first_then_by_name(tmp_path):
    for name in ['zeta', 'Alpha', 'mid']:
        (tmp_path / name).mkdir()
    for name in ['b.txt', 'A.txt', 'c.txt']:
        (tmp_path / name).write_text(name)

    data = FileOps(str(tmp_path)).list_dir('')

    assert [f.name for f in data.files] == ['Alpha', 'mid', 'zeta', 'A.txt', 'b.txt', 'c.txt']
    assert [f.is_dir for f in data.files] == [True, True, True, False, False, False]
    assert all(f.size == 0 for f in data.files if f.is_dir)


def test_list_directories_only_keeps_relative_order(tmp_path):
    for name in ['zeta', 'Alpha', 'mid']:
        (tmp_path / name).mkdir()
    (tmp_path / 'file.txt').write_text('x')
    ops = FileOps(str(tmp_path))

    full = [f.name for f in ops.list_dir('/').files if f.is_dir]
    dirs = ops.list_subdirs('/')

    assert [f.name for f in dirs.files] == full
    assert all(f.is_dir for f in dirs.files)
    assert all(f.size_formatted is None for f in dirs.files)


def test_list_skips_entries_without_metadata(tmp_path):
    (tmp_path / 'ok.txt').write_text('x')
    os.symlink(tmp_path / 'missing-target', tmp_path / 'dangling')

    data = FileOps(str(tmp_path)).list_dir('/')

    assert [f.name for f in data.files] == ['ok.txt']


def test_list_missing_directory_returns_404(tmp_path):
    with pytest.raises(HTTPException) as exc:
        files.list_files(path='/nope', ops=FileOps(str(tmp_path)))

    assert exc.value.status_code == 404


def test_list_file_returns_400(tmp_path):
    (tmp_path / 'a.txt').write_text('x')

    with pytest.raises(HTTPException) as exc:
        files.list_files(path='/a.txt', ops=FileOps(str(tmp_path)))

    assert exc.value.status_code == 400


def test_list_read_error_returns_500(tmp_path, monkeypatch):
    def _boom(_target, _root):
        raise PermissionError('denied')

    monkeypatch.setattr(files.FileOps, 'list_dir', lambda self, rel: _boom(rel, self.root))

    with pytest.raises(HTTPException) as exc:
        files.list_files(path='/', ops=FileOps(str(tmp_path)))

    assert exc.value.status_code == 500
    assert exc.value.detail == 'Error reading directory'


def test_ls_missing_directory_returns_404(tmp_path):
    with pytest.raises(HTTPException) as exc:
        files.list_folders(path='/nope', ops=FileOps(str(tmp_path)))

    assert exc.value.status_code == 404


def _make_undecodable(directory, raw_name: bytes, is_dir: bool = False):
    target = os.path.join(os.fsencode(directory), raw_name)
    try:
        if is_dir:
            os.mkdir(target)
        else:
            with open(target, 'wb') as handle:
                handle.write(b'x')
    except OSError:
        pytest.skip('filesystem rejects non UTF-8 names')


def test_list_survives_undecodable_file_name(tmp_path):
    (tmp_path / 'ok.txt').write_text('x')
    (tmp_path / 'zz').mkdir()
    _make_undecodable(tmp_path, b'bad\xff.txt')

    data = files.list_files(path='/', ops=FileOps(str(tmp_path)))
    body = data.model_dump_json(by_alias=True)

    assert [f.name for f in data.files] == ['zz', 'bad\ufffd.txt', 'ok.txt']
    assert data.files[1].path == '/bad\ufffd.txt'
    assert 'ok.txt' in body


def test_ls_survives_undecodable_directory_name(tmp_path):
    (tmp_path / 'plain').mkdir()
    _make_undecodable(tmp_path, b'dir\xfe', is_dir=True)

    data = files.list_folders(path='/', ops=FileOps(str(tmp_path)))
    data.model_dump_json(by_alias=True)

    assert [f.name for f in data.files] == ['dir\ufffd', 'plain']


def test_list_orders_names_by_utf8_bytes(tmp_path):
    for name in ['\U0001f600.txt', 'z.txt', '\u00e9.txt', '\uffee.txt']:
        (tmp_path / name).write_text('x')

    data = FileOps(str(tmp_path)).list_dir('/')

    assert [f.name for f in data.files] == ['z.txt', '\u00e9.txt', '\uffee.txt', '\U0001f600.txt']


def test_list_through_symlink_keeps_client_path(tmp_path):
    (tmp_path / 'real').mkdir()
    (tmp_path / 'real' / 'x.txt').write_text('x')
    (tmp_path / 'link').symlink_to(tmp_path / 'real')

    data = FileOps(str(tmp_path)).list_dir('/link')

    assert data.current_path == '/link'
    assert data.parent_path == '/'
    assert [f.path for f in data.files] == ['/link/x.txt']


def test_list_normalizes_requested_path(tmp_path):
    (tmp_path / 'sub' / 'inner').mkdir(parents=True)

    data = FileOps(str(tmp_path)).list_subdirs('sub/./inner/')

    assert data.current_path == '/sub/inner'
    assert data.parent_path == '/sub'
